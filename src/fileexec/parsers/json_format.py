"""JSON decoder.

Accepts a single object or an array of objects. Nested objects are flattened
with ``_`` separators; numbers and booleans become fields, strings are dropped
unless listed in ``string_fields`` or ``tag_keys``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from fileexec.errors import ParseError
from fileexec.metric import Metric, utcnow
from fileexec.parsers.base import Decoder, FormatKind
from fileexec.parsers.csv_format import parse_time


@dataclass
class JSONOptions:
    """Options for the json data format."""

    tag_keys: list[str] = field(default_factory=list)
    string_fields: list[str] = field(default_factory=list)
    name_key: str | None = None
    time_key: str | None = None
    time_format: str | None = None


def flatten(obj: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested dicts and lists into ``a_b_0`` style keys."""
    flat: dict[str, Any] = {}
    for key, value in obj.items():
        name = f"{prefix}_{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten(value, name))
        elif isinstance(value, list):
            flat.update(flatten({str(i): v for i, v in enumerate(value)}, name))
        else:
            flat[name] = value
    return flat


class JSONParser(Decoder):
    """Decoder for JSON objects."""

    data_format = "json"
    kind = FormatKind.WHOLE_BUFFER

    def __init__(
        self,
        options: JSONOptions | None = None,
        metric_name: str = "fileexec",
    ) -> None:
        super().__init__(metric_name)
        self.options = options or JSONOptions()

    def parse(self, data: bytes) -> list[Metric]:
        text = self._decode(data).strip()
        if not text:
            return []
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(self.data_format, str(e)) from e

        if isinstance(doc, dict):
            objects = [doc]
        elif isinstance(doc, list):
            objects = doc
        else:
            raise ParseError(self.data_format, f"expected object or array, got {type(doc).__name__}")

        now = utcnow()
        metrics = []
        for obj in objects:
            if not isinstance(obj, dict):
                raise ParseError(self.data_format, f"expected object in array, got {type(obj).__name__}")
            metrics.append(self._to_metric(obj, now))
        return metrics

    def _to_metric(self, obj: dict[str, Any], now: Any) -> Metric:
        opts = self.options
        metric = Metric(name=self.metric_name, time=now)

        for key, value in flatten(obj).items():
            if key == opts.name_key and isinstance(value, str):
                metric.name = value
            elif key == opts.time_key:
                try:
                    metric.time = parse_time(str(value), opts.time_format)
                except ValueError as e:
                    raise ParseError(self.data_format, f"time key {key!r}: {e}") from e
            elif key in opts.tag_keys:
                if value is not None:
                    metric.add_tag(key, str(value).lower() if isinstance(value, bool) else str(value))
            elif isinstance(value, bool) or isinstance(value, (int, float)):
                metric.add_field(key, value)
            elif isinstance(value, str) and key in opts.string_fields:
                metric.add_field(key, value)

        return metric
