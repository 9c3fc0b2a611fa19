"""Configuration file loading.

Handles:
- YAML file parsing
- Layering of several files
- Environment variable overrides
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from fileexec.config.merge import merge_configs
from fileexec.config.schema import (
    DEFAULT_INTERVAL,
    DEFAULT_TIMEOUT,
    Config,
    FileExecConfig,
    LoggingConfig,
    ValueOptions,
)
from fileexec.errors import ConfigError
from fileexec.parsers.csv_format import CSVOptions
from fileexec.parsers.json_format import JSONOptions

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("fileexec.config")

_DURATION = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*(ns|us|µs|ms|s|m|h)?\s*$")
_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> float:
    """Convert ``"5s"``, ``"500ms"``, ``"1m"`` or a bare number to seconds.

    Raises:
        ConfigError: If the value is not a non-negative duration.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigError(f"negative duration {value!r}")
        return float(value)
    if isinstance(value, str):
        match = _DURATION.match(value)
        if match:
            number, unit = match.groups()
            return float(number) * _UNITS[unit or "s"]
    raise ConfigError(f"invalid duration {value!r}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning an empty dict if it does not exist.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML mapping.

    Raises:
        ConfigError: If the file cannot be read, is invalid YAML, or its top
            level is not a mapping.
    """
    if not path.exists():
        _log.debug("Config file %s not found, skipping", path)
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    FILEEXEC_LOG sets the log file, FILEEXEC_INTERVAL the gather interval.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("FILEEXEC_LOG")
    if log_path:
        overrides["logging"] = {"file": log_path}

    interval = os.environ.get("FILEEXEC_INTERVAL")
    if interval:
        overrides["interval"] = interval

    return overrides


def _section(data: dict[str, Any], key: str, where: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where}.{key} must be a mapping")
    return value


def _str_list(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where} must be a list of strings")
    return list(value)


def _build(factory: Callable[..., Any], data: dict[str, Any], where: str) -> Any:
    try:
        return factory(**data)
    except TypeError as e:
        raise ConfigError(f"{where}: {e}") from e


def input_from_dict(data: dict[str, Any], where: str = "inputs[0]") -> FileExecConfig:
    """Convert one ``inputs`` entry to a FileExecConfig.

    Raises:
        ConfigError: On missing or mistyped keys.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"{where} must be a mapping")

    files = _str_list(data.get("files"), f"{where}.files")
    if not files:
        raise ConfigError(f"{where}.files must name at least one glob")

    command = data.get("command")
    if command is not None and not isinstance(command, str):
        raise ConfigError(f"{where}.command must be a string")

    tags = _section(data, "tags", where)
    data_format = data.get("data_format", "influx")
    if not isinstance(data_format, str):
        raise ConfigError(f"{where}.data_format must be a string")

    config = FileExecConfig(
        files=files,
        commands=_str_list(data.get("commands"), f"{where}.commands"),
        command=command,
        timeout=parse_duration(data.get("timeout", DEFAULT_TIMEOUT)),
        from_beginning=bool(data.get("from_beginning", False)),
        data_format=data_format,
        csv=_build(CSVOptions, _section(data, "csv", where), f"{where}.csv"),
        json=_build(JSONOptions, _section(data, "json", where), f"{where}.json"),
        value=_build(ValueOptions, _section(data, "value", where), f"{where}.value"),
        name_override=data.get("name_override"),
        name_prefix=data.get("name_prefix", ""),
        name_suffix=data.get("name_suffix", ""),
        tags={str(k): str(v) for k, v in tags.items()},
    )
    if not config.all_commands():
        raise ConfigError(f"{where} has no commands")
    return config


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Args:
        data: Merged configuration dictionary.

    Returns:
        Typed Config object.

    Raises:
        ConfigError: If a section is malformed.
    """
    log_data = _section(data, "logging", "config")
    verbose = log_data.get("verbose")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=int(verbose) if verbose is not None else None,
        file=log_data.get("file"),
    )

    inputs_data = data.get("inputs") or []
    if not isinstance(inputs_data, list):
        raise ConfigError("config.inputs must be a list")
    inputs = [input_from_dict(item, f"inputs[{i}]") for i, item in enumerate(inputs_data)]

    known_keys = {"logging", "interval", "inputs"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        logging=logging_config,
        interval=parse_duration(data.get("interval", DEFAULT_INTERVAL)),
        inputs=inputs,
        extra=extra,
    )


def load_config(*paths: str | Path) -> Config:
    """Load and merge config from the given files.

    Later files override earlier ones; environment variables override all
    files.

    Args:
        *paths: YAML files, lowest priority first. Missing files are skipped.

    Returns:
        Merged Config object.

    Raises:
        ConfigError: If any file is invalid.
    """
    layers: list[dict[str, Any]] = []
    for path in paths:
        data = load_yaml_file(Path(path))
        if data:
            _log.debug("Loaded config from %s", path)
            layers.append(data)

    env_config = env_overrides()
    if env_config:
        layers.append(env_config)

    return dict_to_config(merge_configs(*layers))
