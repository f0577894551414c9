"""Error taxonomy for catalog loading, building, resolution and selection.

Every error carries the context needed to diagnose it (country, table,
column, identifier) both as attributes and in its message. None of these
are retried anywhere in the package: they reflect malformed source data or
an unsatisfiable request.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence


class PopCatalogError(Exception):
    """Base class for all package errors."""


class LoadError(PopCatalogError):
    """A country's metadata (or the country manifest) could not be loaded."""

    def __init__(self, country: Optional[str], resource: str, reason: str) -> None:
        self.country = country
        self.resource = resource
        self.reason = reason
        where = f"country '{country}'" if country else "manifest"
        super().__init__(f"Failed to load {where} from '{resource}': {reason}")


class CatalogError(PopCatalogError):
    """The combined catalog could not be built from the loaded tables."""


class SchemaMismatch(CatalogError):
    def __init__(self, table: str, country: Optional[str], detail: str) -> None:
        self.table = table
        self.country = country
        self.detail = detail
        where = f" for country '{country}'" if country else ""
        super().__init__(f"Schema mismatch in table '{table}'{where}: {detail}")


class MissingJoinTarget(CatalogError):
    """A join step matched none of a non-empty input."""

    def __init__(self, step: str, rows_before: int) -> None:
        self.step = step
        self.rows_before = rows_before
        super().__init__(
            f"Join '{step}' dropped all {rows_before} rows; "
            "referenced rows are missing from the target table"
        )


class DuplicateJoinTarget(CatalogError):
    def __init__(self, table: str, ids: Iterable[str]) -> None:
        self.table = table
        self.ids = sorted(str(i) for i in ids)
        shown = ", ".join(self.ids[:5])
        more = f" (+{len(self.ids) - 5} more)" if len(self.ids) > 5 else ""
        super().__init__(f"Table '{table}' has conflicting rows for id(s): {shown}{more}")


class ResolutionError(PopCatalogError):
    """An identifier could not be resolved against the catalog."""


class NonTextValue(ResolutionError):
    def __init__(self, column: str, metric_id: object, row: Optional[int], detail: str) -> None:
        self.column = column
        self.metric_id = metric_id
        self.row = row
        self.detail = detail
        at = f" at row {row}" if row is not None else ""
        super().__init__(
            f"Cannot expand {metric_id}: column '{column}'{at} is not text ({detail})"
        )


class UnknownGeometryLevel(ResolutionError):
    def __init__(self, level: str) -> None:
        self.level = level
        super().__init__(f"No geometry found for level '{level}'")


class SelectionError(PopCatalogError):
    """A selection plan could not be derived for the request."""


class NoGeometryAvailable(SelectionError):
    def __init__(self, requested: Sequence[object]) -> None:
        self.requested = list(requested)
        super().__init__(
            "No geometry level available for requested metrics: "
            + ", ".join(str(r) for r in self.requested)
        )


class NoRowsAfterGeometryFilter(SelectionError):
    def __init__(self, geometry: str, requested: Sequence[object]) -> None:
        self.geometry = geometry
        self.requested = list(requested)
        super().__init__(
            f"No metrics left at geometry level '{geometry}' for requested metrics: "
            + ", ".join(str(r) for r in self.requested)
        )


class NoRowsForYears(SelectionError):
    def __init__(self, years: Sequence[str], geometry: str, requested: Sequence[object]) -> None:
        self.years = list(years)
        self.geometry = geometry
        self.requested = list(requested)
        super().__init__(
            f"No metrics from year(s) {', '.join(self.years)} at geometry level '{geometry}' "
            "for requested metrics: " + ", ".join(str(r) for r in self.requested)
        )


__all__ = [
    "PopCatalogError",
    "LoadError",
    "CatalogError",
    "SchemaMismatch",
    "MissingJoinTarget",
    "DuplicateJoinTarget",
    "ResolutionError",
    "NonTextValue",
    "UnknownGeometryLevel",
    "SelectionError",
    "NoGeometryAvailable",
    "NoRowsAfterGeometryFilter",
    "NoRowsForYears",
]
