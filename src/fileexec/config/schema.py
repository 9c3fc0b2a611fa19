"""Configuration schema dataclasses for fileexec.

All fields have defaults so that partial configs merge together cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fileexec.parsers.csv_format import CSVOptions
from fileexec.parsers.json_format import JSONOptions

DEFAULT_METRIC_NAME = "fileexec"
DEFAULT_TIMEOUT = 5.0
DEFAULT_INTERVAL = 10.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class ValueOptions:
    """Options for the value data format."""

    data_type: str = "float"  # integer, float, string, boolean
    field_name: str = "value"


@dataclass
class FileExecConfig:
    """One watcher instance: what to watch, what to run, how to decode.

    Example config.yaml:
        inputs:
          - files: ["/var/mymetrics.out"]
            commands:
              - "/tmp/test.sh {filepath}"
              - "/tmp/collect_*.sh {filepath}"
            timeout: 5s
            data_format: influx
    """

    files: list[str] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)
    command: str | None = None  # Legacy single command, run after `commands`
    timeout: float = DEFAULT_TIMEOUT  # Seconds per command
    from_beginning: bool = False  # Trigger for files already present at start
    data_format: str = "influx"
    csv: CSVOptions = field(default_factory=CSVOptions)
    json: JSONOptions = field(default_factory=JSONOptions)
    value: ValueOptions = field(default_factory=ValueOptions)
    name_override: str | None = None
    name_prefix: str = ""
    name_suffix: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def metric_name(self) -> str:
        """Measurement name for formats that don't carry one."""
        return self.name_override or DEFAULT_METRIC_NAME

    def all_commands(self) -> list[str]:
        """Configured templates, with the legacy ``command`` appended."""
        templates = list(self.commands)
        if self.command:
            templates.append(self.command)
        return templates


@dataclass
class Config:
    """Root configuration object."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    interval: float = DEFAULT_INTERVAL  # Seconds between gathers
    inputs: list[FileExecConfig] = field(default_factory=list)

    # Unknown top-level sections, kept for extensions
    extra: dict[str, Any] = field(default_factory=dict)
