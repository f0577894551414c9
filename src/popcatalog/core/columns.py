from __future__ import annotations

from typing import Dict, Iterable, Tuple

from popcatalog.core.enums import MetricIdKind, SearchContext, TableKind


# Raw table columns
ID = "id"
SOURCE_DATA_RELEASE_ID = "source_data_release_id"
GEOMETRY_METADATA_ID = "geometry_metadata_id"
DATA_PUBLISHER_ID = "data_publisher_id"

# Combined view columns
HXL_TAG = "hxl_tag"
HUMAN_READABLE_NAME = "human_readable_name"
DESCRIPTION = "description"
SOURCE_METRIC_ID = "source_metric_id"
STORAGE_PATH = "metric_parquet_path"
STORAGE_COLUMN = "parquet_column_name"
COUNTRY = "country"
YEAR = "year"
GEOMETRY_LEVEL = "geometry_level"
RELEASE_NAME = "release_name"
RELEASE_REFERENCE_PERIOD_START = "release_reference_period_start"
DATA_PUBLISHER_NAME = "data_publisher_name"

RELEASE_PREFIX = "release_"
GEOMETRY_PREFIX = "geometry_"
DATA_PUBLISHER_PREFIX = "data_publisher_"

REQUIRED_COLUMNS: Dict[TableKind, Tuple[str, ...]] = {
    TableKind.METRICS: (
        ID,
        HUMAN_READABLE_NAME,
        DESCRIPTION,
        HXL_TAG,
        SOURCE_DATA_RELEASE_ID,
        STORAGE_PATH,
        STORAGE_COLUMN,
    ),
    TableKind.GEOMETRIES: (ID, "level", "hxl_tag", "filename_stem"),
    TableKind.SOURCE_DATA_RELEASES: (
        ID,
        "name",
        GEOMETRY_METADATA_ID,
        DATA_PUBLISHER_ID,
    ),
    TableKind.DATA_PUBLISHERS: (ID, "name"),
    TableKind.COUNTRIES: (ID,),
}

# Added as null text columns when no country supplies them
OPTIONAL_METRIC_COLUMNS: Tuple[str, ...] = (
    SOURCE_METRIC_ID,
    "parquet_margin_of_error_column",
    "parquet_margin_of_error_file",
    "parent_metric_id",
    "potential_denominator_ids",
    "source_download_url",
    "source_archive_file_path",
    "source_documentation_url",
)

# Dropped once the joins are done
INTERMEDIATE_ID_COLUMNS: Tuple[str, ...] = (
    SOURCE_DATA_RELEASE_ID,
    GEOMETRY_METADATA_ID,
    DATA_PUBLISHER_ID,
)

METRIC_ID_COLUMNS: Dict[MetricIdKind, str] = {
    MetricIdKind.HXL: HXL_TAG,
    MetricIdKind.ID: ID,
    MetricIdKind.COMMON_NAME: HUMAN_READABLE_NAME,
}

SEARCH_CONTEXT_COLUMNS: Dict[SearchContext, str] = {
    SearchContext.HXL: HXL_TAG,
    SearchContext.HUMAN_READABLE_NAME: HUMAN_READABLE_NAME,
    SearchContext.DESCRIPTION: DESCRIPTION,
}

# SearchRequest dimension name -> combined view column
DIMENSION_COLUMNS: Dict[str, str] = {
    "year": YEAR,
    "geometry_level": GEOMETRY_LEVEL,
    "source_data_release": RELEASE_NAME,
    "data_publisher": DATA_PUBLISHER_NAME,
    "country": COUNTRY,
    "source_metric_id": SOURCE_METRIC_ID,
}


def prefixed_rename_map(
    columns: Iterable[str], prefix: str, keep: Iterable[str] = ()
) -> Dict[str, str]:
    """Return old→new names giving every column except `keep` the table prefix.

    Geometry's `level` becomes `geometry_level`, a release's `name` becomes
    `release_name`, and so on. Columns already carrying the prefix are left
    alone so renaming is idempotent.
    """
    keep_set = set(keep)
    return {
        c: f"{prefix}{c}"
        for c in columns
        if c not in keep_set and not c.startswith(prefix)
    }
