"""Decoder base class and the closed set of format kinds."""

from __future__ import annotations

from enum import Enum

from fileexec.errors import ParseError
from fileexec.metric import Metric


class FormatKind(Enum):
    """How process output is fed to a decoder.

    - WHOLE_BUFFER: the whole stdout buffer is decoded in one call
    - LINE_ORIENTED: the first output of a source is decoded as a document
      (consuming header rows); later outputs are decoded line by line
    - HEALTH_CHECK: like WHOLE_BUFFER, but the process exit status is folded
      into the metrics as a status field instead of being an error
    """

    WHOLE_BUFFER = "whole_buffer"
    LINE_ORIENTED = "line_oriented"
    HEALTH_CHECK = "health_check"


class Decoder:
    """Base class for output decoders.

    Subclasses set ``data_format`` and ``kind`` and implement ``parse``.
    ``parse_line`` defaults to decoding the line as a one-line buffer.
    """

    data_format: str = ""
    kind: FormatKind = FormatKind.WHOLE_BUFFER

    def __init__(self, metric_name: str = "fileexec") -> None:
        self.metric_name = metric_name

    def parse(self, data: bytes) -> list[Metric]:
        """Decode a whole buffer.

        Raises:
            ParseError: If the buffer is malformed.
        """
        raise NotImplementedError

    def parse_line(self, line: str) -> Metric | None:
        """Decode a single line.

        Returns:
            The metric on the line, or None for lines that carry none
            (blank lines, comments).

        Raises:
            ParseError: If the line is malformed.
        """
        metrics = self.parse(line.encode("utf-8"))
        if not metrics:
            return None
        if len(metrics) > 1:
            raise ParseError(self.data_format, f"expected one metric per line, got {len(metrics)}")
        return metrics[0]

    def _decode(self, data: bytes) -> str:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(self.data_format, f"output is not valid utf-8: {e}") from e


def infer_value(text: str) -> int | float | bool | str:
    """Convert a scalar string to int, float or bool, falling back to str."""
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        pass
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return text
