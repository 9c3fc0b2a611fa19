"""Error kinds reported by the collection pipeline.

None of these are fatal to a scan. They are raised or returned at the point of
failure, logged, and handed to the accumulator so that one misbehaving watch
target, command, or decoder never stops collection from the rest.
"""

from __future__ import annotations


class FileExecError(Exception):
    """Base class for all pipeline errors."""

    pass


class ConfigError(FileExecError):
    """Configuration could not be loaded or is structurally invalid."""

    pass


class GlobCompileError(FileExecError):
    """A watch pattern could not be compiled.

    The offending target is skipped; other targets are still scanned.
    """

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"glob {pattern!r} failed to compile: {reason}")
        self.pattern = pattern
        self.reason = reason


class StatError(FileExecError):
    """A matched path could not be stat'ed (usually it vanished mid-scan)."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"unable to stat {path!r}: {reason}")
        self.path = path


class CommandParseError(FileExecError):
    """A command line could not be tokenized, or tokenized to nothing."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"unable to parse command {command!r}: {reason}")
        self.command = command


class ProcessTimeoutError(FileExecError):
    """The process ran past its timeout and was killed."""

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f"command {command!r} timed out after {timeout:g}s")
        self.command = command
        self.timeout = timeout


class ProcessExitError(FileExecError):
    """The process exited non-zero, or could not be started at all.

    Attributes:
        exit_code: Process exit code. 127 when the executable was not found,
            126 when it could not be executed.
    """

    def __init__(self, command: str, exit_code: int, detail: str = "") -> None:
        message = f"command {command!r} exited with status {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code


class ParseError(FileExecError):
    """Process output could not be decoded into metrics."""

    def __init__(self, data_format: str, reason: str) -> None:
        super().__init__(f"{data_format}: {reason}")
        self.data_format = data_format
        self.reason = reason
