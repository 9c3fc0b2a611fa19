"""Bounded execution of external commands.

Provides the ProcessRunner protocol, the asyncio subprocess implementation,
and the CapturedOutput result type.
"""

from fileexec.runner.protocol import ProcessRunner
from fileexec.runner.result import CapturedOutput
from fileexec.runner.subprocess_runner import (
    MAX_STDERR_BYTES,
    SubprocessRunner,
    remove_carriage_returns,
    truncate_stderr,
)

__all__ = [
    "CapturedOutput",
    "MAX_STDERR_BYTES",
    "ProcessRunner",
    "SubprocessRunner",
    "remove_carriage_returns",
    "truncate_stderr",
]
