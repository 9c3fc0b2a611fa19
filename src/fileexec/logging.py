"""Logging for fileexec.

Everything logs through children of the ``fileexec`` logger (see
``get_logger``). Two extra levels sit around the standard ones:

    TRACE (5)     per-file mtime comparisons, raw output sizes
    VERBOSE (15)  one line per finished command with its duration

``setup_logging`` attaches a single handler, writing to ``LoggingConfig.file``
(or ``$FILEEXEC_LOG``) when set and to stderr otherwise.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fileexec.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("fileexec")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s]: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# --verbose N: 0 errors only ... 4 everything
_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_initialized = False


class _LowercaseLevelFormatter(logging.Formatter):
    """Formatter that emits lowercase level names."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Pick the effective log level from a LoggingConfig.

    ``verbose`` takes precedence over ``level``; unknown names fall back to INFO.
    """
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[min(max(config.verbose, 0), len(_VERBOSITY) - 1)]
    if config.level:
        name = config.level.upper()
        if name == "WARN":
            name = "WARNING"
        level = logging.getLevelName(name)
        return level if isinstance(level, int) else logging.INFO
    return logging.INFO


def _open_handler(log_path: str | None) -> logging.Handler:
    if log_path:
        try:
            return logging.FileHandler(os.path.expanduser(log_path), mode="a", encoding="utf-8")
        except OSError as e:
            print(f"[fileexec] Failed to open log file {log_path}: {e}", file=sys.stderr)
    return logging.StreamHandler(sys.stderr)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach the fileexec handler and set the level.

    Only the first call has an effect.

    Args:
        config: Level, verbosity and log file settings. ``FILEEXEC_LOG`` is
            used for the file when the config does not name one.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    handler = _open_handler(config.file if config and config.file else os.environ.get("FILEEXEC_LOG"))
    handler.setLevel(level)
    handler.setFormatter(_LowercaseLevelFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    logger.setLevel(level)
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the ``fileexec`` logger, or its child ``fileexec.<name>``."""
    if name:
        return logger.getChild(name)
    return logger
