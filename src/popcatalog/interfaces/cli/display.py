"""Plain-text rendering of search results and selection plans."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from popcatalog.core.columns import (
    DESCRIPTION,
    GEOMETRY_LEVEL,
    HUMAN_READABLE_NAME,
    HXL_TAG,
    ID,
)
from popcatalog.core.query.materialize import MetricRequest
from popcatalog.core.query.search import SearchResults
from popcatalog.core.query.selection import FullSelectionPlan


RESULT_FIELDS: Sequence[Tuple[str, str]] = (
    ("Metric ID", ID),
    ("Human readable name", HUMAN_READABLE_NAME),
    ("Description", DESCRIPTION),
    ("HXL tag", HXL_TAG),
    ("Geometry level", GEOMETRY_LEVEL),
)

_RULE = "─" * 60


def _block(pairs: Sequence[Tuple[str, str]]) -> List[str]:
    width = max(len(label) for label, _ in pairs)
    return [f"{label.rjust(width)}  {value}" for label, value in pairs]


def format_search_results(results: SearchResults, max_results: Optional[int] = None) -> str:
    """Render one labelled block per result row."""
    shown = results.head(max_results)
    lines: List[str] = []
    for row in shown.rows():
        lines.append(_RULE)
        lines.extend(
            _block([(label, "" if row.get(col) is None else str(row[col])) for label, col in RESULT_FIELDS])
        )
    if lines:
        lines.append(_RULE)
    if max_results is not None and len(results) > len(shown):
        lines.append(f"Showing {len(shown)} of {len(results)} results")
    return "\n".join(lines)


def format_plan(plan: FullSelectionPlan, requests: Optional[Sequence[MetricRequest]] = None) -> str:
    lines = _block(
        [
            ("Geometry", plan.geometry),
            ("Years", ", ".join(plan.years) if plan.years else "(unspecified)"),
            ("Metrics", ", ".join(m.value for m in plan.resolved_metric_ids)),
        ]
    )
    if requests:
        lines.append("")
        lines.append("Storage:")
        for r in requests:
            lines.append(f"  {r.metric_id}: {r.storage_path} [{r.storage_column}]")
    if plan.advisory_notes:
        lines.append("")
        lines.append("Notes:")
        lines.extend(f"  - {n}" for n in plan.advisory_notes.splitlines())
    return "\n".join(lines)
