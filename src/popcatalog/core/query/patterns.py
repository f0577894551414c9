from __future__ import annotations

from functools import reduce
import logging
from typing import Iterable, List, Union

import polars as pl

from popcatalog.core.errors import NonTextValue, ResolutionError
from .ids import MetricId


logger = logging.getLogger(__name__)

View = Union[pl.LazyFrame, pl.DataFrame]


def _as_lazy(view: View) -> pl.LazyFrame:
    return view.lazy() if isinstance(view, pl.DataFrame) else view


def resolve_exact(metric_id: MetricId) -> pl.Expr:
    """Equality predicate for a fully qualified identifier."""
    return metric_id.to_expr()


def expand_pattern(
    view: View, metric_id: MetricId, *, case_sensitive: bool = True
) -> List[MetricId]:
    """Expand a possibly partial identifier into every identifier it matches.

    The identifier's value is used as a regular expression searched for
    anywhere in its column. One identifier of the same kind is returned per
    matching row, in view order, without deduplication. No match gives an
    empty list.

    Raises:
        NonTextValue: The column is not text, or a matching value is null.
            Nothing is returned in that case.
        ResolutionError: The column is missing or the pattern is not a valid
            regular expression.
    """
    lf = _as_lazy(view)
    column = metric_id.column
    schema = lf.collect_schema()
    if column not in schema:
        raise ResolutionError(f"Column '{column}' not found in view for {metric_id}")
    dtype = schema[column]
    if dtype != pl.String:
        raise NonTextValue(column, metric_id, None, f"column dtype is {dtype}")

    try:
        matches = (
            lf.with_row_index("__row")
            .filter(metric_id.to_fuzzy_expr(case_sensitive=case_sensitive))
            .select("__row", column)
            .collect()
        )
    except pl.exceptions.PolarsError as e:
        raise ResolutionError(f"Invalid pattern in {metric_id}: {e}") from e

    expanded: List[MetricId] = []
    for row, value in zip(matches["__row"].to_list(), matches[column].to_list()):
        if not isinstance(value, str):
            raise NonTextValue(column, metric_id, row, f"value is {value!r}")
        expanded.append(metric_id.with_value(value))
    logger.debug("Expanded %s into %d identifier(s)", metric_id, len(expanded))
    return expanded


def expand_patterns(
    view: View, metric_ids: Iterable[MetricId], *, case_sensitive: bool = True
) -> List[MetricId]:
    """Expand several identifiers, concatenating results in request order."""
    out: List[MetricId] = []
    for metric_id in metric_ids:
        out.extend(expand_pattern(view, metric_id, case_sensitive=case_sensitive))
    return out


def requested_metrics_predicate(
    view: View, metric_ids: Iterable[MetricId], *, case_sensitive: bool = True
) -> pl.Expr:
    """OR together one predicate per requested identifier.

    An identifier whose value occurs verbatim in its column matches only
    those rows; any other identifier is treated as a pattern. With no
    identifiers the predicate matches nothing.

    Raises:
        ResolutionError: A pattern is not a valid regular expression.
    """
    lf = _as_lazy(view)
    predicates: List[pl.Expr] = []
    for metric_id in metric_ids:
        exact = resolve_exact(metric_id)
        try:
            has_exact = lf.filter(exact).select(pl.len()).collect().item() > 0
        except pl.exceptions.PolarsError as e:
            raise ResolutionError(f"Cannot resolve {metric_id}: {e}") from e
        if has_exact:
            predicates.append(exact)
        else:
            fuzzy = metric_id.to_fuzzy_expr(case_sensitive=case_sensitive)
            try:
                lf.filter(fuzzy).select(pl.len()).collect()
            except pl.exceptions.PolarsError as e:
                raise ResolutionError(f"Invalid pattern in {metric_id}: {e}") from e
            predicates.append(fuzzy)
    if not predicates:
        return pl.lit(False)
    return reduce(lambda a, b: a | b, predicates)
