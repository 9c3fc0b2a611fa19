"""Single-value decoder."""

from __future__ import annotations

from fileexec.errors import ParseError
from fileexec.metric import Metric, utcnow
from fileexec.parsers.base import Decoder, FormatKind

DATA_TYPES = ("integer", "float", "string", "boolean")


class ValueParser(Decoder):
    """Decode output that is just one value.

    If the output holds several whitespace-separated tokens the last one is
    used, so ``wc -l`` style output works.
    """

    data_format = "value"
    kind = FormatKind.WHOLE_BUFFER

    def __init__(
        self,
        data_type: str = "float",
        field_name: str = "value",
        metric_name: str = "fileexec",
    ) -> None:
        super().__init__(metric_name)
        if data_type not in DATA_TYPES:
            raise ValueError(f"unknown value data_type {data_type!r}")
        self.data_type = data_type
        self.field_name = field_name

    def parse(self, data: bytes) -> list[Metric]:
        text = self._decode(data).strip()
        if not text:
            return []
        if self.data_type != "string":
            text = text.split()[-1]

        try:
            if self.data_type == "integer":
                value: int | float | str | bool = int(text)
            elif self.data_type == "float":
                value = float(text)
            elif self.data_type == "boolean":
                lowered = text.lower()
                if lowered not in ("true", "false"):
                    raise ValueError(f"invalid boolean {text!r}")
                value = lowered == "true"
            else:
                value = text
        except ValueError as e:
            raise ParseError(self.data_format, str(e)) from e

        metric = Metric(name=self.metric_name, fields={self.field_name: value}, time=utcnow())
        return [metric]
