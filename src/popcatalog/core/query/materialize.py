from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import polars as pl

from popcatalog.core.columns import ID, STORAGE_COLUMN, STORAGE_PATH


@dataclass(frozen=True)
class MetricRequest:
    """Where the values of one metric are stored.

    This pair is everything a value loader needs from the catalog.
    """

    metric_id: str
    storage_path: str
    storage_column: str


def rank_values(
    view: Union[pl.LazyFrame, pl.DataFrame], column: str
) -> List[Tuple[str, int]]:
    """Count rows per value of `column` and rank them.

    Ranking is by count descending, then value ascending, so equal counts
    always come out in the same order. Null values are not ranked.
    """
    lf = view.lazy() if isinstance(view, pl.DataFrame) else view
    out = (
        lf.filter(pl.col(column).is_not_null())
        .group_by(column)
        .agg(pl.len().alias("count"))
        .sort(["count", column], descending=[True, False])
        .collect()
    )
    return [(str(v), int(c)) for v, c in zip(out[column].to_list(), out["count"].to_list())]


def metric_requests(frame: pl.DataFrame) -> List[MetricRequest]:
    """Extract the storage location of every row, in row order."""
    subset = frame.select(ID, STORAGE_PATH, STORAGE_COLUMN)
    return [
        MetricRequest(metric_id=str(mid), storage_path=str(path), storage_column=str(col))
        for mid, path, col in subset.iter_rows()
    ]


def materialize_result(
    frame: pl.DataFrame,
    *,
    columns: Optional[Sequence[str]] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Dict[str, Any]:
    """Turn a result frame into a JSON friendly payload.

    Dates and other non-JSON scalars are left to the caller's encoder.
    """
    total = frame.height
    if columns:
        keep = [c for c in columns if c in frame.columns]
        if keep:
            frame = frame.select(keep)
    if offset:
        frame = frame.slice(offset)
    if limit is not None:
        frame = frame.head(limit)
    return {"row_count": total, "returned": frame.height, "data": frame.to_dicts()}
