"""CSV decoder.

The first document decoded for a source consumes ``header_row_count`` header
rows (after ``skip_rows``) and remembers the column names. Later lines from
the same source are decoded with ``parse_line`` against the remembered header.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from fileexec.errors import ParseError
from fileexec.metric import Metric, utcnow
from fileexec.parsers.base import Decoder, FormatKind, infer_value

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_UNIX_DIVISORS = {"unix": 1, "unix_ms": 10**3, "unix_us": 10**6, "unix_ns": 10**9}


@dataclass
class CSVOptions:
    """Options for the csv data format."""

    header_row_count: int = 0
    skip_rows: int = 0
    skip_columns: int = 0
    column_names: list[str] = field(default_factory=list)
    column_types: list[str] = field(default_factory=list)  # "int", "float", "bool", "string"
    delimiter: str = ","
    comment: str = ""
    trim_space: bool = False
    tag_columns: list[str] = field(default_factory=list)
    measurement_column: str | None = None
    timestamp_column: str | None = None
    timestamp_format: str | None = None


def _convert(value: str, kind: str) -> Any:
    if kind == "int":
        return int(value)
    if kind == "float":
        return float(value)
    if kind == "bool":
        lowered = value.lower()
        if lowered in ("true", "t", "1"):
            return True
        if lowered in ("false", "f", "0"):
            return False
        raise ValueError(f"invalid bool {value!r}")
    if kind == "string":
        return value
    raise ValueError(f"unknown column type {kind!r}")


def parse_time(value: str, timestamp_format: str | None) -> datetime:
    """Parse a timestamp column value.

    ``unix``, ``unix_ms``, ``unix_us`` and ``unix_ns`` are epoch offsets; any
    other format is handed to ``datetime.strptime``. Naive results are UTC.

    Raises:
        ValueError: If the value does not match the format or is out of range.
    """
    if not timestamp_format:
        raise ValueError("timestamp_format is required with timestamp_column")
    divisor = _UNIX_DIVISORS.get(timestamp_format)
    if divisor is not None:
        try:
            if divisor == 1:
                return _EPOCH + timedelta(seconds=float(value))
            return _EPOCH + timedelta(microseconds=int(value) * 10**6 // divisor)
        except OverflowError as e:
            raise ValueError(f"timestamp {value} out of range") from e
    parsed = datetime.strptime(value, timestamp_format)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CSVParser(Decoder):
    """Decoder for delimiter-separated values with header rows."""

    data_format = "csv"
    kind = FormatKind.LINE_ORIENTED

    def __init__(
        self,
        options: CSVOptions | None = None,
        metric_name: str = "fileexec",
    ) -> None:
        super().__init__(metric_name)
        self.options = options or CSVOptions()
        if len(self.options.delimiter) != 1:
            raise ValueError(f"csv delimiter must be one character: {self.options.delimiter!r}")
        self._columns: list[str] = list(self.options.column_names)

    @property
    def columns(self) -> list[str]:
        return list(self._columns)

    def _rows(self, text: str) -> list[list[str]]:
        lines = [
            line for line in text.splitlines()
            if line.strip() and not (self.options.comment and line.startswith(self.options.comment))
        ]
        reader = csv.reader(
            io.StringIO("\n".join(lines)),
            delimiter=self.options.delimiter,
            skipinitialspace=self.options.trim_space,
        )
        try:
            rows = list(reader)
        except csv.Error as e:
            raise ParseError(self.data_format, str(e)) from e
        if self.options.trim_space:
            rows = [[cell.strip() for cell in row] for row in rows]
        return rows

    def parse(self, data: bytes) -> list[Metric]:
        rows = self._rows(self._decode(data))
        rows = rows[self.options.skip_rows:]

        header_count = self.options.header_row_count
        if header_count:
            if len(rows) < header_count:
                raise ParseError(self.data_format, f"expected {header_count} header row(s), got {len(rows)}")
            header_rows, rows = rows[:header_count], rows[header_count:]
            if not self.options.column_names:
                width = max(len(r) for r in header_rows)
                names = [""] * width
                for row in header_rows:
                    for i, cell in enumerate(row):
                        names[i] += cell
                self._columns = names[self.options.skip_columns:]

        now = utcnow()
        return [self._record(row, now) for row in rows]

    def parse_line(self, line: str) -> Metric | None:
        if not line.strip():
            return None
        if self.options.comment and line.startswith(self.options.comment):
            return None
        # headerless data falls back to positional column names in _record
        if not self._columns and self.options.header_row_count:
            raise ParseError(self.data_format, "no header parsed yet and no column_names configured")
        rows = self._rows(line)
        if not rows:
            return None
        return self._record(rows[0], utcnow())

    def _record(self, row: list[str], now: datetime) -> Metric:
        values = row[self.options.skip_columns:]
        if not self._columns:
            columns = [str(i + 1) for i in range(len(values))]
        else:
            columns = self._columns
        if len(values) > len(columns):
            raise ParseError(self.data_format, f"row has {len(values)} columns, header has {len(columns)}")

        metric = Metric(name=self.metric_name, time=now)
        for index, (column, value) in enumerate(zip(columns, values)):
            if value == "":
                continue
            try:
                if column == self.options.measurement_column:
                    metric.name = value
                elif column == self.options.timestamp_column:
                    metric.time = parse_time(value, self.options.timestamp_format)
                elif column in self.options.tag_columns:
                    metric.add_tag(column, value)
                elif index < len(self.options.column_types):
                    metric.add_field(column, _convert(value, self.options.column_types[index]))
                else:
                    metric.add_field(column, infer_value(value))
            except ValueError as e:
                raise ParseError(self.data_format, f"column {column!r}: {e}") from e

        if self.options.timestamp_column and self.options.timestamp_column in columns:
            position = columns.index(self.options.timestamp_column)
            if position >= len(values) or values[position] == "":
                raise ParseError(self.data_format, f"timestamp column {self.options.timestamp_column!r} is empty")

        return metric
