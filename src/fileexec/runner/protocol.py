"""Process runner protocol for command execution."""

from __future__ import annotations

from typing import Protocol

from fileexec.runner.result import CapturedOutput


class ProcessRunner(Protocol):
    """Protocol for running one external command with a timeout.

    Implementations:
    - SubprocessRunner: Local asyncio subprocess execution
    - Test doubles that return canned CapturedOutput
    """

    async def run(self, command: str, timeout: float) -> CapturedOutput:
        """Run a command line.

        Args:
            command: Full command line, tokenized with shell-style quoting.
            timeout: Seconds before the process is killed.

        Returns:
            CapturedOutput. Failures are carried in ``error``, never raised.
        """
        ...
