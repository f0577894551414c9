from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, List, Mapping, Optional, Sequence

import polars as pl

from popcatalog.core.columns import (
    COUNTRY,
    DATA_PUBLISHER_ID,
    DATA_PUBLISHER_PREFIX,
    GEOMETRY_METADATA_ID,
    GEOMETRY_PREFIX,
    ID,
    INTERMEDIATE_ID_COLUMNS,
    OPTIONAL_METRIC_COLUMNS,
    RELEASE_PREFIX,
    RELEASE_REFERENCE_PERIOD_START,
    REQUIRED_COLUMNS,
    SOURCE_DATA_RELEASE_ID,
    YEAR,
    prefixed_rename_map,
)
from popcatalog.core.config import CatalogConfig
from popcatalog.core.enums import TableKind
from popcatalog.core.errors import (
    CatalogError,
    DuplicateJoinTarget,
    MissingJoinTarget,
    SchemaMismatch,
    UnknownGeometryLevel,
)
from popcatalog.core.utils import get_geometry_path


logger = logging.getLogger(__name__)

_JOIN_KEY = "__join_key"
_ROW_INDEX = "__row_index"


@dataclass(frozen=True)
class CountryTables:
    """The five raw metadata tables of one country."""

    metrics: pl.DataFrame
    geometries: pl.DataFrame
    source_data_releases: pl.DataFrame
    data_publishers: pl.DataFrame
    countries: pl.DataFrame

    def get(self, kind: TableKind) -> pl.DataFrame:
        return getattr(self, kind.value)


@dataclass(frozen=True)
class _JoinStep:
    name: str
    table: TableKind
    left_on: str
    prefix: str
    keep: Sequence[str] = ()


# Order matters: each step needs the foreign keys brought in by the previous one
_JOIN_STEPS = (
    _JoinStep(
        name="metrics x source_data_releases",
        table=TableKind.SOURCE_DATA_RELEASES,
        left_on=SOURCE_DATA_RELEASE_ID,
        prefix=RELEASE_PREFIX,
        keep=(GEOMETRY_METADATA_ID, DATA_PUBLISHER_ID),
    ),
    _JoinStep(
        name="x geometries",
        table=TableKind.GEOMETRIES,
        left_on=GEOMETRY_METADATA_ID,
        prefix=GEOMETRY_PREFIX,
    ),
    _JoinStep(
        name="x data_publishers",
        table=TableKind.DATA_PUBLISHERS,
        left_on=DATA_PUBLISHER_ID,
        prefix=DATA_PUBLISHER_PREFIX,
    ),
)


class Catalog:
    """Immutable combined view over all loaded countries.

    Built once by `build_catalog`; afterwards only read. The combined frame is
    handed out as a fresh LazyFrame (or a clone), so callers cannot modify the
    backing data.
    """

    def __init__(
        self,
        combined: pl.DataFrame,
        tables: Mapping[TableKind, pl.DataFrame],
        country_codes: Sequence[str],
        config: CatalogConfig,
    ) -> None:
        self._combined = combined
        self._tables: Dict[TableKind, pl.DataFrame] = dict(tables)
        self._country_codes = tuple(country_codes)
        self.config = config

    def combined(self) -> pl.LazyFrame:
        """Lazy query handle over the combined view."""
        return self._combined.lazy()

    def combined_frame(self) -> pl.DataFrame:
        return self._combined.clone()

    def table(self, kind: TableKind) -> pl.DataFrame:
        """Unioned raw table of the given kind (with its `country` tag)."""
        return self._tables[kind].clone()

    @property
    def countries_table(self) -> pl.DataFrame:
        return self.table(TableKind.COUNTRIES)

    def countries(self) -> List[str]:
        return list(self._country_codes)

    @property
    def columns(self) -> List[str]:
        return list(self._combined.columns)

    def __len__(self) -> int:
        return self._combined.height

    def geometry_path(self, level: str) -> str:
        """Return the geometry artifact location for a geometry level.

        Uses the first geometry row with that level, as levels are unique
        within a country.
        """
        matches = self._tables[TableKind.GEOMETRIES].filter(pl.col("level") == level)
        if matches.height == 0:
            raise UnknownGeometryLevel(level)
        return get_geometry_path(self.config, str(matches["filename_stem"][0]))

    def __repr__(self) -> str:
        return (
            f"Catalog(countries={list(self._country_codes)}, "
            f"rows={self._combined.height}, columns={self._combined.width})"
        )


def _describe_schema_diff(
    expected: Mapping[str, pl.DataType],
    actual: Mapping[str, pl.DataType],
    reference_country: str,
) -> str:
    parts = []
    missing = [c for c in expected if c not in actual]
    extra = [c for c in actual if c not in expected]
    changed = [
        f"{c} ({expected[c]} != {actual[c]})"
        for c in expected
        if c in actual and expected[c] != actual[c]
    ]
    if missing:
        parts.append(f"missing {', '.join(missing)}")
    if extra:
        parts.append(f"unexpected {', '.join(extra)}")
    if changed:
        parts.append(f"dtype {', '.join(changed)}")
    return f"differs from '{reference_country}': " + "; ".join(parts)


def union_tables(
    kind: TableKind, tables_per_country: Mapping[str, CountryTables]
) -> pl.DataFrame:
    """Concatenate one table kind across countries, tagging rows with `country`.

    Every country must provide the required columns and exactly the same
    column names and dtypes as the first country; column order may differ.
    """
    reference: Optional[Dict[str, pl.DataType]] = None
    reference_country = ""
    order: List[str] = []
    frames: List[pl.DataFrame] = []
    for country, tables in tables_per_country.items():
        df = tables.get(kind)
        missing = [c for c in REQUIRED_COLUMNS[kind] if c not in df.columns]
        if missing:
            raise SchemaMismatch(
                kind.value, country, f"missing required column(s): {', '.join(missing)}"
            )
        schema = dict(df.schema)
        if reference is None:
            reference, reference_country, order = schema, country, list(df.columns)
        elif schema != reference:
            raise SchemaMismatch(
                kind.value, country, _describe_schema_diff(reference, schema, reference_country)
            )
        frames.append(df.select(order).with_columns(pl.lit(country, dtype=pl.String).alias(COUNTRY)))

    merged = pl.concat(frames, how="vertical")
    logger.info("Merged %s with shape: %s", kind.value, merged.shape)
    return merged


def _with_optional_metric_columns(metrics: pl.DataFrame) -> pl.DataFrame:
    absent = [c for c in OPTIONAL_METRIC_COLUMNS if c not in metrics.columns]
    if not absent:
        return metrics
    return metrics.with_columns([pl.lit(None, dtype=pl.String).alias(c) for c in absent])


def _unique_join_target(kind: TableKind, df: pl.DataFrame) -> pl.DataFrame:
    # The same row shipped by two countries is harmless; two different rows
    # under one id would multiply metric rows in the join.
    deduped = df.drop(COUNTRY, strict=False).unique(maintain_order=True)
    conflicting = deduped.filter(pl.col(ID).is_duplicated())[ID].unique().to_list()
    if conflicting:
        raise DuplicateJoinTarget(kind.value, conflicting)
    return deduped


def _join(
    left: pl.DataFrame, right: pl.DataFrame, step: _JoinStep, require_non_empty: bool
) -> pl.DataFrame:
    renamed = right.rename(
        {ID: _JOIN_KEY, **prefixed_rename_map(right.columns, step.prefix, keep=(ID, *step.keep))}
    )
    left_dtype = left.schema[step.left_on]
    right_dtype = renamed.schema[_JOIN_KEY]
    if left_dtype != right_dtype:
        raise SchemaMismatch(
            step.table.value,
            None,
            f"join key '{step.left_on}' is {left_dtype} but '{ID}' is {right_dtype}",
        )

    joined = left.join(
        renamed, left_on=step.left_on, right_on=_JOIN_KEY, how="inner", coalesce=True
    ).drop(_JOIN_KEY, strict=False)

    dropped = left.height - joined.height
    if dropped:
        logger.warning(
            "Join '%s' dropped %d of %d rows with no matching '%s'",
            step.name,
            dropped,
            left.height,
            step.left_on,
        )
    if require_non_empty and left.height > 0 and joined.height == 0:
        raise MissingJoinTarget(step.name, left.height)
    logger.debug("Join '%s': %d -> %d rows", step.name, left.height, joined.height)
    return joined


def _year_expr(columns: Sequence[str]) -> pl.Expr:
    if RELEASE_REFERENCE_PERIOD_START not in columns:
        return pl.lit(None, dtype=pl.String).alias(YEAR)
    return (
        pl.col(RELEASE_REFERENCE_PERIOD_START).cast(pl.String).str.slice(0, 4).alias(YEAR)
    )


def join_tables(
    tables: Mapping[TableKind, pl.DataFrame], *, require_non_empty: bool = True
) -> pl.DataFrame:
    """Join unioned metrics, releases, geometries and publishers.

    Performs inner joins in a fixed order and renames colliding columns with
    `release_`, `geometry_` and `data_publisher_` prefixes. Metric row order
    is preserved. Foreign key columns are dropped from the result.
    """
    combined = _with_optional_metric_columns(tables[TableKind.METRICS]).with_row_index(_ROW_INDEX)
    for step in _JOIN_STEPS:
        target = _unique_join_target(step.table, tables[step.table])
        combined = _join(combined, target, step, require_non_empty)

    combined = (
        combined.sort(_ROW_INDEX)
        .drop([_ROW_INDEX, *INTERMEDIATE_ID_COLUMNS], strict=False)
    )
    combined = combined.with_columns(_year_expr(combined.columns))
    logger.debug("Column names in merged metadata: %s", combined.columns)
    return combined


def build_catalog(
    tables_per_country: Mapping[str, CountryTables],
    config: Optional[CatalogConfig] = None,
) -> Catalog:
    """Union per-country tables and join them into a Catalog.

    Args:
        tables_per_country: Raw tables keyed by country code, in load order.
        config: Catalog configuration; defaults are used when omitted.

    Returns:
        The immutable Catalog.

    Raises:
        SchemaMismatch: A table's columns differ between countries or lack
            required columns.
        DuplicateJoinTarget: A join target has two different rows for one id.
        MissingJoinTarget: A join step dropped every row while
            `config.require_non_empty_joins` is set.
    """
    config = config or CatalogConfig()
    if not tables_per_country:
        raise CatalogError("No country tables to build the catalog from")

    tables = {kind: union_tables(kind, tables_per_country) for kind in TableKind}
    combined = join_tables(tables, require_non_empty=config.require_non_empty_joins)
    logger.info(
        "Built catalog for %d countries: %d metrics in combined view",
        len(tables_per_country),
        combined.height,
    )
    return Catalog(combined, tables, list(tables_per_country), config)
