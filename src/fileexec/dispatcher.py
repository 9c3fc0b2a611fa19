"""Fan-out of commands for one changed file."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from fileexec.commands import CommandExpander
from fileexec.errors import ParseError
from fileexec.logging import VERBOSE, get_logger
from fileexec.metric import Accumulator
from fileexec.parsers.output import OutputParser
from fileexec.runner.protocol import ProcessRunner
from fileexec.runner.result import CapturedOutput

log = get_logger("dispatcher")


@dataclass
class DispatchReport:
    """What one dispatch did."""

    path: str
    commands: list[str] = field(default_factory=list)
    metrics: int = 0
    errors: list[Exception] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ChangeDispatcher:
    """Runs every expanded command for a changed file and collects the output.

    For each changed path the templates are expanded, all resulting commands
    are started concurrently, and ``dispatch`` returns only after every one of
    them has finished, failed or timed out. A failing command only costs its
    own metrics.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        parser: OutputParser,
        accumulator: Accumulator,
        timeout: float,
    ) -> None:
        self.runner = runner
        self.parser = parser
        self.accumulator = accumulator
        self.timeout = timeout

    async def dispatch(self, changed_path: str, templates: Iterable[str]) -> DispatchReport:
        """Expand, fan out, join.

        Args:
            changed_path: Path substituted for the placeholder.
            templates: Command templates, in configuration order.

        Returns:
            DispatchReport for this file.
        """
        report = DispatchReport(path=changed_path)

        def add_error(error: Exception) -> None:
            report.errors.append(error)
            self.accumulator.add_error(error)

        report.commands = CommandExpander(templates).expand(changed_path, add_error)
        if not report.commands:
            log.debug("no commands to run for %s", changed_path)
            return report

        results = await asyncio.gather(
            *(self.runner.run(command, self.timeout) for command in report.commands)
        )

        for output in results:
            report.metrics += self._handle(output, add_error)

        log.debug("dispatch for %s finished: %d command(s), %d metric(s), %d error(s)",
                  changed_path, len(report.commands), report.metrics, len(report.errors))
        return report

    def _handle(self, output: CapturedOutput, add_error: Callable[[Exception], None]) -> int:
        """Parse one command's output into the accumulator.

        Returns:
            Number of metrics emitted.
        """
        log.log(VERBOSE, "processed command [%s] in %.0fms", output.command, output.duration_ms)

        if output.error is not None and not self.parser.tolerates_exit_errors:
            add_error(output.error)
            return 0

        first = self.parser.first_observation(output.command)
        try:
            metrics = self.parser.parse(output.stdout, first, output.error)
        except ParseError as e:
            add_error(e)
            return 0
        except Exception as e:
            log.exception("%s decoder failed on output of [%s]", self.parser.data_format, output.command)
            add_error(ParseError(self.parser.data_format, f"decoder failed: {e!r}"))
            return 0

        for metric in metrics:
            self.accumulator.add_metric(metric)
        return len(metrics)
