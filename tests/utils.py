"""Shared test utilities for fileexec tests."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from pathlib import Path

from fileexec.errors import ProcessExitError, ProcessTimeoutError
from fileexec.runner.result import CapturedOutput

Responder = Callable[[str, float], CapturedOutput]


def set_mtime(path: Path, seconds: int) -> int:
    """Set a file's modification time to an exact value.

    Returns:
        The new mtime in nanoseconds.
    """
    ns = seconds * 1_000_000_000
    os.utime(path, ns=(ns, ns))
    return ns


def ok(command: str, stdout: bytes = b"") -> CapturedOutput:
    return CapturedOutput(command=command, stdout=stdout, exit_code=0)


def exited(command: str, code: int, stdout: bytes = b"", stderr: bytes = b"") -> CapturedOutput:
    return CapturedOutput(
        command=command,
        stdout=stdout,
        stderr=stderr,
        error=ProcessExitError(command, code, stderr.decode()),
        exit_code=code,
    )


def timed_out(command: str, timeout: float) -> CapturedOutput:
    return CapturedOutput(command=command, error=ProcessTimeoutError(command, timeout))


class FakeRunner:
    """ProcessRunner double that records calls and returns canned output.

    By default every command echoes its own arguments, like ``/bin/echo``.
    """

    def __init__(self, responder: Responder | None = None, delay: float = 0.0) -> None:
        self.calls: list[tuple[str, float]] = []
        self.active = 0
        self.max_active = 0
        self._responder = responder or self._echo
        self._delay = delay

    @staticmethod
    def _echo(command: str, timeout: float) -> CapturedOutput:
        args = command.split(" ", 1)[1] if " " in command else ""
        return ok(command, (args + "\n").encode())

    @property
    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]

    async def run(self, command: str, timeout: float) -> CapturedOutput:
        self.calls.append((command, timeout))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            return self._responder(command, timeout)
        finally:
            self.active -= 1
