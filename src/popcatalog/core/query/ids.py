from __future__ import annotations

from dataclasses import dataclass

import polars as pl

from popcatalog.core.columns import METRIC_ID_COLUMNS
from popcatalog.core.enums import MetricIdKind


@dataclass(frozen=True)
class MetricId:
    """A reference to a metric by HXL tag, opaque id or human readable name.

    The kind decides which combined view column the value is matched against
    (`hxl_tag`, `id` or `human_readable_name`). Instances are immutable and
    hashable.

    Examples:
        >>> MetricId.hxl("#population+adults").column
        'hxl_tag'
        >>> MetricId.parse("name:Children aged 5 to 17")
        MetricId(kind=<MetricIdKind.COMMON_NAME: 'common_name'>, value='Children aged 5 to 17')
    """

    kind: MetricIdKind
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.kind, MetricIdKind):
            object.__setattr__(self, "kind", MetricIdKind(self.kind))
        if not isinstance(self.value, str):
            raise TypeError(f"MetricId value must be a string, got {type(self.value).__name__}")

    @classmethod
    def hxl(cls, value: str) -> "MetricId":
        return cls(MetricIdKind.HXL, value)

    @classmethod
    def from_id(cls, value: str) -> "MetricId":
        return cls(MetricIdKind.ID, value)

    @classmethod
    def common_name(cls, value: str) -> "MetricId":
        return cls(MetricIdKind.COMMON_NAME, value)

    @classmethod
    def parse(cls, text: str) -> "MetricId":
        """Parse `kind:value` where kind is `hxl`, `id` or `name`/`common_name`.

        Text without a recognised prefix is treated as an opaque id.
        """
        prefix, sep, rest = text.partition(":")
        if sep:
            key = prefix.strip().lower()
            if key == "name":
                key = MetricIdKind.COMMON_NAME.value
            if key in {k.value for k in MetricIdKind}:
                return cls(MetricIdKind(key), rest)
        return cls.from_id(text)

    @property
    def column(self) -> str:
        """Combined view column this id is matched against."""
        return METRIC_ID_COLUMNS[self.kind]

    def with_value(self, value: str) -> "MetricId":
        """Same kind, new value; used when expanding a pattern."""
        return MetricId(self.kind, value)

    def to_expr(self) -> pl.Expr:
        """Exact match on the id's column."""
        return pl.col(self.column) == pl.lit(self.value, dtype=pl.String)

    def to_fuzzy_expr(self, *, case_sensitive: bool = True) -> pl.Expr:
        """Regex containment match on the id's column."""
        pattern = self.value if case_sensitive else f"(?i){self.value}"
        return pl.col(self.column).str.contains(pattern, literal=False)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"
