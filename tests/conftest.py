"""Shared pytest fixtures: small in-memory catalogs and on-disk catalog layouts."""

from datetime import date
from pathlib import Path
from typing import Callable, Dict, List, Optional

import polars as pl
import pytest

from popcatalog.core.config import CatalogConfig
from popcatalog.core.enums import TableKind
from popcatalog.core.query.catalog import Catalog, CountryTables, build_catalog


METRIC_SCHEMA = {
    "id": pl.String,
    "human_readable_name": pl.String,
    "description": pl.String,
    "hxl_tag": pl.String,
    "source_data_release_id": pl.String,
    "metric_parquet_path": pl.String,
    "parquet_column_name": pl.String,
    "source_metric_id": pl.String,
}

RELEASE_SCHEMA = {
    "id": pl.String,
    "name": pl.String,
    "url": pl.String,
    "description": pl.String,
    "geometry_metadata_id": pl.String,
    "data_publisher_id": pl.String,
    "date_published": pl.Date,
    "reference_period_start": pl.Date,
    "reference_period_end": pl.Date,
    "collection_period_start": pl.Date,
    "collection_period_end": pl.Date,
    "expect_next_update": pl.Date,
}

GEOMETRY_SCHEMA = {
    "id": pl.String,
    "level": pl.String,
    "hxl_tag": pl.String,
    "filename_stem": pl.String,
    "validity_period_start": pl.Date,
    "validity_period_end": pl.Date,
}

PUBLISHER_SCHEMA = {"id": pl.String, "name": pl.String, "url": pl.String, "description": pl.String}

COUNTRY_SCHEMA = {"id": pl.String, "name": pl.String}


def metric(
    mid: str,
    hxl: str,
    name: str,
    release: str,
    *,
    description: Optional[str] = None,
    source_metric_id: Optional[str] = None,
) -> Dict:
    return {
        "id": mid,
        "human_readable_name": name,
        "description": description or f"{name} ({mid})",
        "hxl_tag": hxl,
        "source_data_release_id": release,
        "metric_parquet_path": f"metrics/{release}.parquet",
        "parquet_column_name": f"col_{mid}",
        "source_metric_id": source_metric_id,
    }


def release(rid: str, name: str, geometry: str, publisher: str, year: Optional[int]) -> Dict:
    start = date(year, 1, 1) if year else None
    return {
        "id": rid,
        "name": name,
        "url": f"https://example.org/{rid}",
        "description": f"Release {name}",
        "geometry_metadata_id": geometry,
        "data_publisher_id": publisher,
        "date_published": date(year + 1, 6, 1) if year else None,
        "reference_period_start": start,
        "reference_period_end": date(year, 12, 31) if year else None,
        "collection_period_start": start,
        "collection_period_end": date(year, 12, 31) if year else None,
        "expect_next_update": date(year + 10, 1, 1) if year else None,
    }


def geometry(gid: str, level: str, stem: str) -> Dict:
    return {
        "id": gid,
        "level": level,
        "hxl_tag": f"#geo+{level}",
        "filename_stem": stem,
        "validity_period_start": date(2020, 1, 1),
        "validity_period_end": date(2030, 12, 31),
    }


def publisher(pid: str, name: str) -> Dict:
    return {"id": pid, "name": name, "url": f"https://{name.lower()}.example", "description": name}


def make_country(
    metrics: List[Dict],
    releases: List[Dict],
    geometries: List[Dict],
    publishers: List[Dict],
    countries: Optional[List[Dict]] = None,
) -> CountryTables:
    return CountryTables(
        metrics=pl.DataFrame(metrics, schema=METRIC_SCHEMA),
        geometries=pl.DataFrame(geometries, schema=GEOMETRY_SCHEMA),
        source_data_releases=pl.DataFrame(releases, schema=RELEASE_SCHEMA),
        data_publishers=pl.DataFrame(publishers, schema=PUBLISHER_SCHEMA),
        countries=pl.DataFrame(countries or [], schema=COUNTRY_SCHEMA),
    )


def write_country_tables(root: Path, tables_per_country: Dict[str, CountryTables]) -> Path:
    """Write tables and a countries.txt manifest in the loader's layout."""
    paths = CatalogConfig().paths
    root.mkdir(parents=True, exist_ok=True)
    for country, tables in tables_per_country.items():
        country_dir = root / country
        country_dir.mkdir(parents=True, exist_ok=True)
        for kind in TableKind:
            tables.get(kind).write_parquet(country_dir / paths.for_table(kind))
    manifest = "# countries\n" + "\n".join(tables_per_country) + "\n\n"
    (root / "countries.txt").write_text(manifest, encoding="utf-8")
    return root


@pytest.fixture
def fixtures() -> Dict[str, Callable]:
    """Row and table factories for tests that need custom catalogs."""
    return {
        "metric": metric,
        "release": release,
        "geometry": geometry,
        "publisher": publisher,
        "make_country": make_country,
    }


@pytest.fixture
def sample_tables() -> Dict[str, CountryTables]:
    """Two countries; combined view order is be-1..be-5 then uk-1..uk-3."""
    be = make_country(
        metrics=[
            metric("be-1", "#population+adults", "Adults", "rel-be-2021-mun",
                   source_metric_id="TF_SOC_POP_STRUCT"),
            metric("be-2", "#population+children+age5_17", "Children aged 5 to 17", "rel-be-2021-mun"),
            metric("be-3", "#population+children+age0_17", "Children aged 0 to 17", "rel-be-2021-mun"),
            metric("be-4", "#population+adults", "Adults", "rel-be-2021-prov"),
            metric("be-5", "#population+ind", "Total population", "rel-be-2011-mun"),
        ],
        releases=[
            release("rel-be-2021-mun", "Census 2021 municipalities", "geo-be-mun", "pub-be", 2021),
            release("rel-be-2021-prov", "Census 2021 provinces", "geo-be-prov", "pub-be", 2021),
            release("rel-be-2011-mun", "Census 2011 municipalities", "geo-be-mun", "pub-be", 2011),
        ],
        geometries=[
            geometry("geo-be-mun", "municipality", "be/geometries/municipality_2021"),
            geometry("geo-be-prov", "province", "be/geometries/province_2021"),
        ],
        publishers=[publisher("pub-be", "Statbel")],
        countries=[{"id": "be", "name": "Belgium"}],
    )
    uk = make_country(
        metrics=[
            metric("uk-1", "#population+adults", "Adults", "rel-uk-2021-oa", source_metric_id="TS001"),
            metric("uk-2", "#population+ind", "Total population", "rel-uk-2021-oa",
                   source_metric_id="TS001"),
            metric("uk-3", "#population+ind", "Total population", "rel-uk-2021-lsoa",
                   source_metric_id="TS001"),
        ],
        releases=[
            release("rel-uk-2021-oa", "Census 2021 output areas", "geo-uk-oa", "pub-uk", 2021),
            release("rel-uk-2021-lsoa", "Census 2021 LSOAs", "geo-uk-lsoa", "pub-uk", 2021),
        ],
        geometries=[
            geometry("geo-uk-oa", "oa", "uk/geometries/oa_2021"),
            geometry("geo-uk-lsoa", "lsoa", "uk/geometries/lsoa_2021"),
        ],
        publishers=[publisher("pub-uk", "ONS")],
        countries=[{"id": "uk", "name": "United Kingdom"}],
    )
    return {"be": be, "uk": uk}


@pytest.fixture
def catalog(sample_tables) -> Catalog:  # pylint: disable=redefined-outer-name
    return build_catalog(sample_tables)


@pytest.fixture
def write_catalog() -> Callable[[Path, Dict[str, CountryTables]], Path]:
    return write_country_tables


@pytest.fixture
def catalog_dir(tmp_path: Path, sample_tables) -> Path:  # pylint: disable=redefined-outer-name
    """The sample catalog written to disk with a manifest."""
    return write_country_tables(tmp_path / "catalog", sample_tables)
