"""InfluxDB line protocol decoder.

Line format:
    measurement[,tag_key=tag_value...] field_key=field_value[,...] [timestamp]

Field values: ``1.5`` float, ``1i`` integer, ``1u`` unsigned, ``t``/``false``
boolean, ``"text"`` string. The timestamp is integer nanoseconds since the
epoch; when it is absent the decode time is used. Commas, spaces and equals
signs inside names are backslash-escaped.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fileexec.errors import ParseError
from fileexec.metric import Metric, utcnow
from fileexec.parsers.base import Decoder, FormatKind

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_TRUE = {"t", "T", "true", "True", "TRUE"}
_FALSE = {"f", "F", "false", "False", "FALSE"}


def _split(text: str, sep: str, quotes: bool = False) -> list[str]:
    """Split on ``sep`` where it is neither escaped nor inside double quotes."""
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    quoted = False
    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\":
            current.append(ch)
            escaped = True
            continue
        if quotes and ch == '"':
            quoted = not quoted
        if ch == sep and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if quoted:
        raise ValueError("unterminated string")
    parts.append("".join(current))
    return parts


def _unescape(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text) and text[i + 1] in ' ,="\\':
            out.append(text[i + 1])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _key_value(pair: str) -> tuple[str, str]:
    parts = _split(pair, "=", quotes=True)
    if len(parts) < 2 or not parts[0]:
        raise ValueError(f"invalid key/value pair {pair!r}")
    return parts[0], "=".join(parts[1:])


def _field_value(raw: str) -> int | float | bool | str:
    if not raw:
        raise ValueError("missing field value")
    if raw.startswith('"'):
        if len(raw) < 2 or not raw.endswith('"'):
            raise ValueError(f"unterminated string {raw!r}")
        return _unescape(raw[1:-1])
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    if raw[-1] in "iu":
        value = int(raw[:-1])
        if raw[-1] == "u" and value < 0:
            raise ValueError(f"negative unsigned value {raw!r}")
        return value
    return float(raw)


def parse_timestamp_ns(raw: str) -> datetime:
    """Convert an integer nanosecond string to an aware datetime.

    Raises:
        ValueError: If the value is not an integer or is out of range.
    """
    ns = int(raw)
    try:
        return _EPOCH + timedelta(microseconds=ns // 1000)
    except OverflowError as e:
        raise ValueError(f"timestamp {raw} out of range") from e


class InfluxParser(Decoder):
    """Decoder for InfluxDB line protocol."""

    data_format = "influx"
    kind = FormatKind.WHOLE_BUFFER

    def parse(self, data: bytes) -> list[Metric]:
        metrics: list[Metric] = []
        now = utcnow()
        for number, line in enumerate(self._decode(data).splitlines(), start=1):
            try:
                metric = self._parse_one(line, now)
            except ValueError as e:
                raise ParseError(self.data_format, f"line {number}: {e}") from e
            if metric is not None:
                metrics.append(metric)
        return metrics

    def parse_line(self, line: str) -> Metric | None:
        try:
            return self._parse_one(line, utcnow())
        except ValueError as e:
            raise ParseError(self.data_format, str(e)) from e

    def _parse_one(self, line: str, now: datetime) -> Metric | None:
        line = line.strip()
        if not line or line.startswith("#"):
            return None

        sections = [s for s in _split(line, " ", quotes=True) if s]
        if len(sections) < 2:
            raise ValueError("missing fields")
        if len(sections) > 3:
            raise ValueError("unexpected trailing data")

        key_parts = _split(sections[0], ",")
        name = _unescape(key_parts[0])
        if not name:
            raise ValueError("missing measurement")
        tags: dict[str, str] = {}
        for pair in key_parts[1:]:
            key, value = _key_value(pair)
            tags[_unescape(key)] = _unescape(value)

        fields: dict[str, int | float | bool | str] = {}
        for pair in _split(sections[1], ",", quotes=True):
            key, value = _key_value(pair)
            fields[_unescape(key)] = _field_value(value)

        timestamp = parse_timestamp_ns(sections[2]) if len(sections) == 3 else now
        return Metric(name=name, tags=tags, fields=fields, time=timestamp)
