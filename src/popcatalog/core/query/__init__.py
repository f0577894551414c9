"""Core query engine public API.

Builds the combined catalog view from per-country tables and exposes
identifier resolution, metadata search and selection planning over Polars
frames. Sibling modules hold the implementations.
"""

from .catalog import Catalog, CountryTables, build_catalog, join_tables, union_tables
from .ids import MetricId
from .patterns import expand_pattern, expand_patterns, requested_metrics_predicate, resolve_exact
from .search import SearchRequest, SearchResults, SearchText
from .materialize import MetricRequest, materialize_result, metric_requests, rank_values
from .selection import FullSelectionPlan, plan_selection

__all__ = [
    "Catalog",
    "CountryTables",
    "build_catalog",
    "join_tables",
    "union_tables",
    "MetricId",
    "resolve_exact",
    "expand_pattern",
    "expand_patterns",
    "requested_metrics_predicate",
    "SearchRequest",
    "SearchResults",
    "SearchText",
    "MetricRequest",
    "materialize_result",
    "metric_requests",
    "rank_values",
    "FullSelectionPlan",
    "plan_selection",
]
