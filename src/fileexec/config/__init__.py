"""Configuration management for fileexec.

YAML-based configuration with:
- Several files layered in order (base config, then site overlays)
- Environment variable overrides (highest priority)

Example usage:
    from fileexec.config import load_config

    config = load_config("/etc/fileexec/config.yaml", "./fileexec.yaml")
    for watcher in config.inputs:
        print(watcher.files, watcher.all_commands())
"""

from fileexec.config.loader import (
    dict_to_config,
    env_overrides,
    input_from_dict,
    load_config,
    load_yaml_file,
    parse_duration,
)
from fileexec.config.merge import deep_merge, merge_configs
from fileexec.config.schema import (
    Config,
    FileExecConfig,
    LoggingConfig,
    ValueOptions,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "dict_to_config",
    "input_from_dict",
    "load_yaml_file",
    "env_overrides",
    "parse_duration",
    # Schema types
    "FileExecConfig",
    "LoggingConfig",
    "ValueOptions",
    # Merging
    "deep_merge",
    "merge_configs",
]
