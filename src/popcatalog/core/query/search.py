"""Structured metadata search over the combined view.

A `SearchRequest` is an AND across dimensions of ORs within each dimension:

- every free-text entry matches its text exactly against any of its context
  fields, and the entries are ORed together;
- every literal dimension that is set matches any of its literals;
- the text term and all set dimensions are ANDed;
- an empty request matches every row.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

import polars as pl

from popcatalog.core.columns import DIMENSION_COLUMNS, SEARCH_CONTEXT_COLUMNS
from popcatalog.core.enums import SearchContext
from .materialize import MetricRequest, metric_requests


logger = logging.getLogger(__name__)

LiteralSet = Optional[FrozenSet[str]]


def _combine_or(exprs: List[pl.Expr]) -> Optional[pl.Expr]:
    if not exprs:
        return None
    return exprs[0] if len(exprs) == 1 else pl.any_horizontal(exprs)


def _combine_and(exprs: List[pl.Expr]) -> Optional[pl.Expr]:
    if not exprs:
        return None
    return exprs[0] if len(exprs) == 1 else pl.all_horizontal(exprs)


def _literal_set(name: str, values: Union[None, str, Iterable[str]]) -> LiteralSet:
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    out = frozenset(values)
    if not out:
        raise ValueError(f"Dimension '{name}' must be omitted rather than empty")
    bad = [v for v in out if not isinstance(v, str)]
    if bad:
        raise ValueError(f"Dimension '{name}' expects strings, got {bad!r}")
    return out


@dataclass(frozen=True)
class SearchText:
    """Free text matched exactly against one or more metric fields."""

    text: str
    context: Tuple[SearchContext, ...] = field(default_factory=SearchContext.all)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "context", tuple(SearchContext(c) for c in self.context)
        )

    def to_expr(self) -> Optional[pl.Expr]:
        return _combine_or(
            [
                pl.col(SEARCH_CONTEXT_COLUMNS[ctx]) == pl.lit(self.text, dtype=pl.String)
                for ctx in self.context
            ]
        )


@dataclass(frozen=True)
class SearchRequest:
    """Multi-dimensional search request.

    Literal dimensions are sets of strings, or None when the dimension does
    not constrain the search. Lists and single strings are accepted and
    normalised to frozensets.
    """

    text: Tuple[SearchText, ...] = ()
    year: LiteralSet = None
    geometry_level: LiteralSet = None
    source_data_release: LiteralSet = None
    data_publisher: LiteralSet = None
    country: LiteralSet = None
    source_metric_id: LiteralSet = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "text", tuple(self.text))
        for name in DIMENSION_COLUMNS:
            object.__setattr__(self, name, _literal_set(name, getattr(self, name)))

    def with_text(
        self, text: str, context: Optional[Iterable[SearchContext]] = None
    ) -> "SearchRequest":
        entry = SearchText(text) if context is None else SearchText(text, tuple(context))
        return replace(self, text=self.text + (entry,))

    def with_year(self, *years: str) -> "SearchRequest":
        return replace(self, year=frozenset(years))

    def with_geometry_level(self, *levels: str) -> "SearchRequest":
        return replace(self, geometry_level=frozenset(levels))

    def with_source_data_release(self, *releases: str) -> "SearchRequest":
        return replace(self, source_data_release=frozenset(releases))

    def with_data_publisher(self, *publishers: str) -> "SearchRequest":
        return replace(self, data_publisher=frozenset(publishers))

    def with_country(self, *countries: str) -> "SearchRequest":
        return replace(self, country=frozenset(countries))

    def with_source_metric_id(self, *ids: str) -> "SearchRequest":
        return replace(self, source_metric_id=frozenset(ids))

    def to_expr(self) -> Optional[pl.Expr]:
        """Compose the request into one predicate; None means match all."""
        terms: List[pl.Expr] = []
        text_term = _combine_or(
            [e for e in (t.to_expr() for t in self.text) if e is not None]
        )
        if text_term is not None:
            terms.append(text_term)
        for name, column in DIMENSION_COLUMNS.items():
            values = getattr(self, name)
            if values is None:
                continue
            # Sorted so equal requests build identical expressions
            dim_term = _combine_or(
                [pl.col(column) == pl.lit(v, dtype=pl.String) for v in sorted(values)]
            )
            if dim_term is not None:
                terms.append(dim_term)
        return _combine_and(terms)

    def search_results(self, view: Union[pl.LazyFrame, pl.DataFrame]) -> "SearchResults":
        logger.debug("Searching with request: %s", self.to_dict())
        lf = view.lazy() if isinstance(view, pl.DataFrame) else view
        expr = self.to_expr()
        if expr is not None:
            lf = lf.filter(expr)
        return SearchResults(lf.collect())

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "text": [
                {"text": t.text, "context": [c.value for c in t.context]} for t in self.text
            ]
        }
        for name in DIMENSION_COLUMNS:
            values = getattr(self, name)
            out[name] = sorted(values) if values is not None else None
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchRequest":
        """Build a request from the mapping produced by `to_dict`."""
        unknown = set(data) - set(DIMENSION_COLUMNS) - {"text"}
        if unknown:
            raise ValueError(f"Unknown search request field(s): {sorted(unknown)}")
        text = tuple(
            SearchText(
                str(item["text"]),
                tuple(item.get("context") or SearchContext.all()),
            )
            for item in data.get("text") or []
        )
        dims = {name: data.get(name) for name in DIMENSION_COLUMNS}
        return cls(text=text, **dims)


@dataclass
class SearchResults:
    """Rows of the combined view matching a search, in view order."""

    frame: pl.DataFrame

    def __len__(self) -> int:
        return self.frame.height

    def rows(self) -> List[Dict[str, Any]]:
        return self.frame.to_dicts()

    def head(self, n: Optional[int]) -> "SearchResults":
        return self if n is None else SearchResults(self.frame.head(n))

    def metric_requests(self) -> List[MetricRequest]:
        return metric_requests(self.frame)
