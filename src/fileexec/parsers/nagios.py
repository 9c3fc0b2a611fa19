"""Nagios plugin output decoder (health-check format).

Plugin output looks like:

    DISK OK - free space: / 3326 MB (56%); | /=2643MB;5948;5958;0;5968
    / 15272 MB (77%);
    /var/log 819 MB (84%); | /boot=68MB;88;93;0;98
    /var/log=818MB;970;975;0;980

The first line is the service output, optionally followed by ``|`` and
performance data. Following lines are long service output until a line
containing ``|``; everything after that is more performance data.

Each perfdata item becomes a ``nagios`` metric tagged with its label and unit.
Service output goes on a ``nagios_state`` metric, which also receives the
plugin's exit status via ``add_state``.
"""

from __future__ import annotations

import math
import re
from datetime import datetime

from fileexec.errors import FileExecError, ParseError, ProcessExitError
from fileexec.metric import Metric, utcnow
from fileexec.parsers.base import Decoder, FormatKind

STATE_OK = 0
STATE_WARNING = 1
STATE_CRITICAL = 2
STATE_UNKNOWN = 3

STATE_METRIC = "nagios_state"

_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_PERFDATA = re.compile(
    rf"""('[^']+'|[^=\s]+)=            # label
         ({_NUMBER}|U)                 # value
         ([a-zA-Z%/]*)                 # unit
         (?:;([^;\s]*))?               # warning
         (?:;([^;\s]*))?               # critical
         (?:;({_NUMBER})?)?            # min
         (?:;({_NUMBER})?)?            # max
         ;*""",
    re.VERBOSE,
)


def exit_state(run_error: FileExecError | None) -> int:
    """Map a run result to a Nagios state.

    Success is OK and an exit code of 1-3 is used as-is. Any other exit code
    (126/127 start failures, signals) and any other error (timeout,
    unparseable command) is UNKNOWN.
    """
    if run_error is None:
        return STATE_OK
    if isinstance(run_error, ProcessExitError) and STATE_OK <= run_error.exit_code <= STATE_UNKNOWN:
        return run_error.exit_code
    return STATE_UNKNOWN


def add_state(run_error: FileExecError | None, metrics: list[Metric]) -> list[Metric]:
    """Record the process exit status as a ``state`` field.

    The field goes on the existing ``nagios_state`` metric if there is one,
    otherwise a new one is appended, stamped with the first metric's time.
    """
    state = exit_state(run_error)
    for metric in metrics:
        if metric.name == STATE_METRIC:
            metric.add_field("state", state)
            return metrics

    timestamp = metrics[0].time if metrics else utcnow()
    metrics.append(Metric(name=STATE_METRIC, fields={"state": state}, time=timestamp))
    return metrics


def _threshold(name: str, raw: str) -> dict[str, float]:
    """Decode a Nagios threshold range into ``<name>_lt``/``_gt`` fields.

    ``10`` alerts outside 0..10, ``10:`` below 10, ``~:10`` above 10,
    ``10:20`` outside 10..20. A leading ``@`` inverts the range, giving
    ``<name>_ge``/``_le`` fields instead.
    """
    if not raw:
        return {}
    inside = raw.startswith("@")
    if inside:
        raw = raw[1:]

    if ":" in raw:
        low_raw, high_raw = raw.split(":", 1)
        low = -math.inf if low_raw == "~" else float(low_raw or 0)
        high = math.inf if high_raw == "" else float(high_raw)
    else:
        low, high = 0.0, float(raw)

    low_key, high_key = (f"{name}_ge", f"{name}_le") if inside else (f"{name}_lt", f"{name}_gt")
    fields: dict[str, float] = {}
    if not math.isinf(low):
        fields[low_key] = low
    if not math.isinf(high):
        fields[high_key] = high
    return fields


class NagiosParser(Decoder):
    """Decoder for Nagios plugin output."""

    data_format = "nagios"
    kind = FormatKind.HEALTH_CHECK

    def parse(self, data: bytes) -> list[Metric]:
        lines = self._decode(data).splitlines()
        if not lines:
            return []
        now = utcnow()

        first, _, perf = lines[0].partition("|")
        service_output = first.strip()
        perfdata = [perf] if perf else []

        long_output: list[str] = []
        in_perf = False
        for line in lines[1:]:
            if in_perf:
                perfdata.append(line)
                continue
            text, bar, perf = line.partition("|")
            if text.strip():
                long_output.append(text.strip())
            if bar:
                in_perf = True
                perfdata.append(perf)

        metrics: list[Metric] = []
        for chunk in perfdata:
            metrics.extend(self._perfdata(chunk, now))

        state = Metric(name=STATE_METRIC, time=now)
        if service_output:
            state.add_field("service_output", service_output)
        if long_output:
            state.add_field("long_service_output", "\n".join(long_output))
        if state.fields:
            metrics.append(state)
        return metrics

    def _perfdata(self, chunk: str, now: datetime) -> list[Metric]:
        metrics: list[Metric] = []
        position = 0
        chunk = chunk.strip()
        while position < len(chunk):
            if chunk[position].isspace():
                position += 1
                continue
            match = _PERFDATA.match(chunk, position)
            if match is None:
                raise ParseError(self.data_format, f"invalid perfdata near {chunk[position:]!r}")
            position = match.end()

            label, value, unit, warning, critical, minimum, maximum = match.groups()
            if value == "U":
                continue
            fields: dict[str, float] = {"value": float(value)}
            try:
                fields.update(_threshold("warning", warning or ""))
                fields.update(_threshold("critical", critical or ""))
            except ValueError as e:
                raise ParseError(self.data_format, f"invalid threshold for {label}: {e}") from e
            if minimum:
                fields["min"] = float(minimum)
            if maximum:
                fields["max"] = float(maximum)

            tags = {"perfdata": label.strip("'")}
            if unit:
                tags["unit"] = unit
            metrics.append(Metric(name="nagios", tags=tags, fields=fields, time=now))
        return metrics
