"""Selection planning: turn a partial metric request into a concrete plan.

The planner fills in whatever the caller left out:

- geometry: the level with the most candidate rows (ties by name);
- years: the reference year with the most rows at that level (ties by value).

Metrics are selected only at the chosen geometry and from the chosen years.

Each automatic choice with alternatives is described in the plan's advisory
notes. Planning is a pure function of its inputs and the combined view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import polars as pl

from popcatalog.core.columns import GEOMETRY_LEVEL, ID, YEAR
from popcatalog.core.errors import (
    NoGeometryAvailable,
    NoRowsAfterGeometryFilter,
    NoRowsForYears,
    ResolutionError,
)
from .ids import MetricId
from .materialize import MetricRequest, metric_requests, rank_values
from .patterns import requested_metrics_predicate


logger = logging.getLogger(__name__)

View = Union[pl.LazyFrame, pl.DataFrame]


@dataclass(frozen=True)
class FullSelectionPlan:
    """A fully resolved selection.

    Attributes:
        resolved_metric_ids: Opaque-id MetricIds of every selected metric, in
            combined view order.
        geometry: Geometry level of the selection.
        years: Years of the selection; empty when none could be derived.
            When set, only metrics from these years are selected.
        advisory_notes: Newline separated notes on choices made for the
            caller; empty when nothing was ambiguous.
    """

    resolved_metric_ids: Tuple[MetricId, ...]
    geometry: str
    years: Tuple[str, ...]
    advisory_notes: str = ""
    requested: Tuple[MetricId, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        for name in ("resolved_metric_ids", "years", "requested"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def metric_requests(self, view: View) -> List[MetricRequest]:
        """Storage locations of the selected metrics at the plan's geometry."""
        lf = view.lazy() if isinstance(view, pl.DataFrame) else view
        ids = [m.value for m in self.resolved_metric_ids]
        frame = lf.filter(
            pl.col(ID).is_in(ids) & (pl.col(GEOMETRY_LEVEL) == self.geometry)
        ).collect()
        return metric_requests(frame)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requested": [str(m) for m in self.requested],
            "resolved_metric_ids": [m.value for m in self.resolved_metric_ids],
            "geometry": self.geometry,
            "years": list(self.years),
            "advisory_notes": self.advisory_notes,
        }


def _choose(
    ranked: List[Tuple[str, int]], what: str, plural: str
) -> Tuple[Optional[str], Optional[str]]:
    if not ranked:
        return None, None
    chosen = ranked[0][0]
    others = [value for value, _ in ranked[1:]]
    note = None
    if others:
        note = (
            f"{what} '{chosen}' was selected automatically; "
            f"other available {plural}: {', '.join(others)}"
        )
    return chosen, note


def plan_selection(
    view: View,
    requested_metrics: Iterable[MetricId],
    geometry: Optional[str] = None,
    years: Optional[Iterable[str]] = None,
    *,
    case_sensitive: bool = True,
) -> FullSelectionPlan:
    """Resolve requested metrics into a FullSelectionPlan.

    Args:
        view: The combined view.
        requested_metrics: Identifiers of any kind; each one matches its exact
            value if present in the catalog, otherwise it is used as a pattern.
        geometry: Geometry level to use verbatim; derived when None.
        years: Years to use verbatim; derived when None. Only metrics from
            the chosen years are selected.
        case_sensitive: Case sensitivity of pattern matching.

    Raises:
        NoGeometryAvailable: No geometry was given and no candidate row has one.
        NoRowsAfterGeometryFilter: No candidate row is at the chosen geometry.
        NoRowsForYears: No candidate row at the geometry is from the chosen years.
        ResolutionError: A requested pattern is not a valid regular expression.
    """
    lf = view.lazy() if isinstance(view, pl.DataFrame) else view
    requested = list(requested_metrics)
    predicate = requested_metrics_predicate(lf, requested, case_sensitive=case_sensitive)
    try:
        candidates = lf.filter(predicate).collect()
    except pl.exceptions.PolarsError as e:
        shown = ", ".join(str(m) for m in requested)
        raise ResolutionError(f"Invalid pattern in {shown}: {e}") from e
    logger.debug("Found %d candidate rows for %d requested metrics", candidates.height, len(requested))

    notes: List[str] = []
    if geometry is None:
        geometry, note = _choose(rank_values(candidates, GEOMETRY_LEVEL), "Geometry level", "levels")
        if geometry is None:
            raise NoGeometryAvailable(requested)
        if note:
            notes.append(note)
        logger.info("Selected geometry level '%s'", geometry)

    at_geometry = candidates.filter(pl.col(GEOMETRY_LEVEL) == geometry)
    if at_geometry.height == 0:
        raise NoRowsAfterGeometryFilter(geometry, requested)

    if years is None:
        year, note = _choose(rank_values(at_geometry, YEAR), "Year", "years")
        if year is None:
            chosen_years: List[str] = []
            notes.append("No year could be derived for the selected metrics; years are unspecified")
        else:
            chosen_years = [year]
            if note:
                notes.append(note)
            logger.info("Selected year '%s'", year)
    else:
        chosen_years = list(years)

    selected = at_geometry
    if chosen_years:
        selected = at_geometry.filter(pl.col(YEAR).is_in(chosen_years))
        if selected.height == 0:
            raise NoRowsForYears(chosen_years, geometry, requested)

    resolved = [
        MetricId.from_id(str(v))
        for v in selected[ID].drop_nulls().unique(maintain_order=True).to_list()
    ]
    if not resolved:
        raise NoRowsAfterGeometryFilter(geometry, requested)

    return FullSelectionPlan(
        resolved_metric_ids=resolved,
        geometry=geometry,
        years=chosen_years,
        advisory_notes="\n".join(notes),
        requested=requested,
    )
