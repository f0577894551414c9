"""Core enumerations used across the package."""

from __future__ import annotations

from enum import Enum


class MetricIdKind(str, Enum):
    """The three ways a metric can be referred to.

    Values are strings to ease serialization and CLI interchange.
    """

    HXL = "hxl"
    ID = "id"
    COMMON_NAME = "common_name"


class SearchContext(str, Enum):
    """Metric fields a free-text search entry may be matched against."""

    HXL = "hxl"
    HUMAN_READABLE_NAME = "human_readable_name"
    DESCRIPTION = "description"

    @classmethod
    def all(cls) -> tuple["SearchContext", ...]:
        return (cls.HXL, cls.HUMAN_READABLE_NAME, cls.DESCRIPTION)


class TableKind(str, Enum):
    """Per-country metadata tables, in load order."""

    METRICS = "metrics"
    GEOMETRIES = "geometries"
    SOURCE_DATA_RELEASES = "source_data_releases"
    DATA_PUBLISHERS = "data_publishers"
    COUNTRIES = "countries"


__all__ = ["MetricIdKind", "SearchContext", "TableKind"]
