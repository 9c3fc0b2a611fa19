"""Output decoders and the parser that dispatches to them.

Supported data formats: influx, csv, json, value and nagios. Decoders are
built from configuration with ``create_decoder``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fileexec.errors import ConfigError
from fileexec.parsers.base import Decoder, FormatKind, infer_value
from fileexec.parsers.csv_format import CSVOptions, CSVParser
from fileexec.parsers.influx import InfluxParser
from fileexec.parsers.json_format import JSONOptions, JSONParser
from fileexec.parsers.nagios import NagiosParser, add_state, exit_state
from fileexec.parsers.output import OutputParser
from fileexec.parsers.value import ValueParser

if TYPE_CHECKING:
    from fileexec.config.schema import FileExecConfig

DATA_FORMATS = ("influx", "csv", "json", "value", "nagios")


def create_decoder(config: FileExecConfig) -> Decoder:
    """Build the decoder selected by ``config.data_format``.

    Raises:
        ConfigError: For unknown formats or invalid format options.
    """
    name = config.metric_name
    try:
        if config.data_format == "influx":
            decoder: Decoder = InfluxParser(metric_name=name)
        elif config.data_format == "csv":
            decoder = CSVParser(config.csv, metric_name=name)
        elif config.data_format == "json":
            decoder = JSONParser(config.json, metric_name=name)
        elif config.data_format == "value":
            decoder = ValueParser(
                data_type=config.value.data_type,
                field_name=config.value.field_name,
                metric_name=name,
            )
        elif config.data_format == "nagios":
            decoder = NagiosParser(metric_name=name)
        else:
            raise ConfigError(
                f"unknown data_format {config.data_format!r}, expected one of {', '.join(DATA_FORMATS)}"
            )
    except ValueError as e:
        raise ConfigError(f"invalid {config.data_format} options: {e}") from e

    return decoder


__all__ = [
    "CSVOptions",
    "CSVParser",
    "DATA_FORMATS",
    "Decoder",
    "FormatKind",
    "InfluxParser",
    "JSONOptions",
    "JSONParser",
    "NagiosParser",
    "OutputParser",
    "ValueParser",
    "add_state",
    "create_decoder",
    "exit_state",
    "infer_value",
]
