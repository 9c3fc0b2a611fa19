"""Metric record and the sinks that receive it.

A Metric is the unit handed from the decoders to the accumulator and, in
batches, to output plugins. The pipeline treats it as an opaque record of
name, timestamp, tags and fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from fileexec.logging import get_logger

log = get_logger("metric")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Metric:
    """A single measurement.

    Attributes:
        name: Measurement name.
        tags: String key/value pairs identifying the series.
        fields: Measured values (int, float, str or bool).
        time: Timestamp, always timezone-aware UTC.
    """

    name: str
    tags: dict[str, str] = field(default_factory=dict)
    fields: dict[str, Any] = field(default_factory=dict)
    time: datetime = field(default_factory=utcnow)

    def add_field(self, key: str, value: Any) -> None:
        self.fields[key] = value

    def add_tag(self, key: str, value: str) -> None:
        self.tags[key] = value

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for logging and output payloads."""
        return {
            "name": self.name,
            "tags": dict(self.tags),
            "fields": dict(self.fields),
            "time": self.time.isoformat(),
        }


class Accumulator(Protocol):
    """Sink for metrics and errors produced during a gather.

    Errors never halt the pipeline; they are handed here and processing
    continues.
    """

    def add_metric(self, metric: Metric) -> None: ...

    def add_error(self, error: Exception) -> None: ...


class Output(Protocol):
    """Persistence sink for finished metric batches.

    Implementations render each metric's timestamp, name, tags and fields into
    their own encoding (escaping untrusted strings as that encoding needs) and
    write them into ``table``.
    """

    table: str

    def connect(self) -> None: ...

    def write(self, batch: list[Metric]) -> None: ...

    def close(self) -> None: ...


class MetricBuffer:
    """In-process Accumulator that collects metrics and errors.

    Errors are logged as they arrive. ``drain()`` hands the collected metrics
    out as a batch and empties the buffer.
    """

    def __init__(self, log_errors: bool = True) -> None:
        self.metrics: list[Metric] = []
        self.errors: list[Exception] = []
        self._log_errors = log_errors

    def add_metric(self, metric: Metric) -> None:
        self.metrics.append(metric)

    def add_error(self, error: Exception) -> None:
        if self._log_errors:
            log.error("%s", error)
        self.errors.append(error)

    def drain(self) -> list[Metric]:
        """Return collected metrics and clear them."""
        batch, self.metrics = self.metrics, []
        return batch

    def clear(self) -> None:
        self.metrics.clear()
        self.errors.clear()

    def __len__(self) -> int:
        return len(self.metrics)
