"""Dispatch of process output to the configured decoder."""

from __future__ import annotations

import threading

from fileexec.errors import FileExecError, ParseError
from fileexec.logging import get_logger
from fileexec.metric import Metric
from fileexec.parsers.base import Decoder, FormatKind
from fileexec.parsers.nagios import add_state

log = get_logger("parsers")


class OutputParser:
    """Turns raw stdout into metrics according to the decoder's FormatKind.

    The format kind is fixed when the parser is built. For LINE_ORIENTED
    decoders the parser remembers which sources it has already seen, so that
    only the first output of each source is read as a document with header.
    """

    def __init__(self, decoder: Decoder) -> None:
        self.decoder = decoder
        self.kind = decoder.kind
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    @property
    def data_format(self) -> str:
        return self.decoder.data_format

    @property
    def tolerates_exit_errors(self) -> bool:
        """True for health-check formats, where exit status is data."""
        return self.kind is FormatKind.HEALTH_CHECK

    def first_observation(self, source: str) -> bool:
        """Mark ``source`` as seen, returning True if it was not seen before."""
        with self._lock:
            if source in self._seen:
                return False
            self._seen.add(source)
            return True

    def parse(
        self,
        output: bytes,
        is_first_observation: bool = True,
        run_error: FileExecError | None = None,
    ) -> list[Metric]:
        """Decode one invocation's stdout.

        Args:
            output: Raw stdout bytes.
            is_first_observation: Whether this is the first output of its
                source. Only LINE_ORIENTED decoders care.
            run_error: The invocation's error, if any. Only HEALTH_CHECK
                decoders look at it, folding it into a state field.

        Returns:
            Decoded metrics.

        Raises:
            ParseError: If the output cannot be decoded.
        """
        if self.kind is FormatKind.LINE_ORIENTED and not is_first_observation:
            metrics = self._parse_lines(output)
        else:
            metrics = self.decoder.parse(output)

        if self.kind is FormatKind.HEALTH_CHECK:
            metrics = add_state(run_error, metrics)

        log.debug("decoded %d metric(s) as %s", len(metrics), self.data_format)
        return metrics

    def _parse_lines(self, output: bytes) -> list[Metric]:
        try:
            text = output.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(self.data_format, f"output is not valid utf-8: {e}") from e
        metrics = []
        for line in text.splitlines():
            if not line.strip():
                continue
            metric = self.decoder.parse_line(line)
            if metric is not None:
                metrics.append(metric)
        return metrics
