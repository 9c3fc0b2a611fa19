"""Subprocess-based process runner."""

from __future__ import annotations

import asyncio
import shlex
import sys
import time

from fileexec.errors import CommandParseError, ProcessExitError, ProcessTimeoutError
from fileexec.logging import TRACE, get_logger
from fileexec.runner.result import CapturedOutput

log = get_logger("runner")

MAX_STDERR_BYTES = 512
TRUNCATION_MARKER = b"..."


def remove_carriage_returns(data: bytes, platform: str | None = None) -> bytes:
    """Strip ``\\r`` bytes on platforms with CRLF line endings."""
    if (platform or sys.platform) == "win32":
        return data.replace(b"\r", b"")
    return data


def truncate_stderr(data: bytes, limit: int = MAX_STDERR_BYTES) -> bytes:
    """Bound stderr to ``limit`` bytes and its first line.

    When anything was cut, TRUNCATION_MARKER is appended, so the result is at
    most ``limit + 3`` bytes. A single trailing newline is dropped silently.
    """
    truncated = False
    if len(data) > limit:
        data = data[:limit]
        truncated = True
    newline = data.find(b"\n")
    if newline > 0:
        if newline < len(data) - 1:
            truncated = True
        data = data[:newline]
    if truncated:
        data += TRUNCATION_MARKER
    return data


def _sanitize_stderr(data: bytes) -> bytes:
    if not data:
        return data
    return truncate_stderr(remove_carriage_returns(data))


async def _drain(stream: asyncio.StreamReader | None, buf: bytearray) -> None:
    """Append everything read from ``stream`` to ``buf`` until EOF.

    Data read before a cancellation stays in ``buf``.
    """
    if stream is None:
        return
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return
        buf.extend(chunk)


class SubprocessRunner:
    """Run commands using asyncio subprocess.

    Stdout and stderr are captured into separate buffers. A process that runs
    past its timeout is killed and reported with ProcessTimeoutError, which is
    distinct from the ProcessExitError of a non-zero exit.
    """

    def __init__(self, cwd: str | None = None, env: dict[str, str] | None = None) -> None:
        """Initialize the runner.

        Args:
            cwd: Working directory for commands. Inherited if None.
            env: Environment for commands. Inherited if None.
        """
        self._cwd = cwd
        self._env = env

    async def run(self, command: str, timeout: float) -> CapturedOutput:
        start_time = time.perf_counter()

        try:
            argv = shlex.split(command)
        except ValueError as e:
            return CapturedOutput(command=command, error=CommandParseError(command, str(e)))
        if not argv:
            return CapturedOutput(command=command, error=CommandParseError(command, "empty command"))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
                env=self._env,
            )
        except FileNotFoundError:
            return self._failed(command, 127, f"command not found: {argv[0]}", start_time)
        except PermissionError:
            return self._failed(command, 126, f"permission denied: {argv[0]}", start_time)
        except OSError as e:
            return self._failed(command, 1, f"os error: {e}", start_time)

        out_buf = bytearray()
        err_buf = bytearray()
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _drain(process.stdout, out_buf),
                    _drain(process.stderr, err_buf),
                    process.wait(),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass  # Process already gone
            log.warning("command %r timed out after %ss, killed", command, timeout)
            return CapturedOutput(
                command=command,
                stdout=remove_carriage_returns(bytes(out_buf)),
                stderr=_sanitize_stderr(bytes(err_buf)),
                error=ProcessTimeoutError(command, timeout),
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )

        stdout = remove_carriage_returns(bytes(out_buf))
        stderr = _sanitize_stderr(bytes(err_buf))
        log.log(TRACE, "command %r wrote %d stdout byte(s)", command, len(stdout))

        exit_code = process.returncode
        error = None
        if exit_code != 0:
            error = ProcessExitError(command, exit_code, stderr.decode("utf-8", errors="replace"))

        return CapturedOutput(
            command=command,
            stdout=stdout,
            stderr=stderr,
            error=error,
            exit_code=exit_code,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    @staticmethod
    def _failed(command: str, exit_code: int, detail: str, start_time: float) -> CapturedOutput:
        return CapturedOutput(
            command=command,
            error=ProcessExitError(command, exit_code, detail),
            exit_code=exit_code,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
