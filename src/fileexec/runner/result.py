"""Captured process output dataclass."""

from __future__ import annotations

from dataclasses import dataclass

from fileexec.errors import FileExecError, ProcessTimeoutError


@dataclass
class CapturedOutput:
    """Result of one bounded command invocation.

    Attributes:
        command: The command line that was run.
        stdout: Raw stdout bytes (carriage returns removed on Windows).
        stderr: Sanitized stderr, cut to MAX_STDERR_BYTES / the first newline.
        error: None on success, otherwise CommandParseError,
            ProcessTimeoutError or ProcessExitError.
        exit_code: Process exit code, or None if it never ran or was killed.
        duration_ms: Wall-clock duration in milliseconds.
    """

    command: str
    stdout: bytes = b""
    stderr: bytes = b""
    error: FileExecError | None = None
    exit_code: int | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """True if the command ran and exited 0."""
        return self.error is None

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, ProcessTimeoutError)

    def __repr__(self) -> str:
        if self.success:
            return f"<CapturedOutput ok, {len(self.stdout)} bytes>"
        return f"<CapturedOutput {type(self.error).__name__}, exit={self.exit_code}>"
