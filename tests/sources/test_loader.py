"""Tests for loading per-country metadata from disk and over HTTP."""

import asyncio
from pathlib import Path

import httpx
import pytest

from popcatalog.core.config import CatalogConfig, CountryMetadataPaths
from popcatalog.core.errors import LoadError
from popcatalog.sources.loader import (
    aload_catalog,
    load_all,
    load_catalog,
    parse_country_manifest,
)


BASE_URL = "https://data.example/popcatalog/v1"


def _serve_directory(root: Path):
    """MockTransport handler serving files under `root` at BASE_URL."""
    prefix = httpx.URL(BASE_URL).path.rstrip("/") + "/"

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if not path.startswith(prefix):
            return httpx.Response(404)
        target = root / path[len(prefix):]
        if not target.is_file():
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=target.read_bytes())

    return handler


class TestManifest:
    def test_parse_skips_comments_blanks_and_duplicates(self):
        text = "# countries\nbe\n\n  uk  # United Kingdom\nbe\n"
        assert parse_country_manifest(text) == ["be", "uk"]

    def test_missing_manifest(self, tmp_path):
        config = CatalogConfig(base_path=str(tmp_path / "nothing"))
        with pytest.raises(LoadError) as exc:
            load_catalog(config)
        assert exc.value.country is None
        assert exc.value.resource.endswith("countries.txt")


class TestLocalLoad:
    def test_load_all_countries(self, catalog_dir):
        catalog = load_catalog(CatalogConfig(base_path=str(catalog_dir)))
        assert catalog.countries() == ["be", "uk"]
        assert len(catalog) == 8

    def test_load_selected_countries(self, catalog_dir):
        catalog = load_catalog(CatalogConfig(base_path=str(catalog_dir)), countries=["uk"])
        assert catalog.countries() == ["uk"]
        assert catalog.combined_frame()["id"].to_list() == ["uk-1", "uk-2", "uk-3"]

    def test_missing_table_fails_whole_load(self, catalog_dir):
        (catalog_dir / "uk" / "geometry_metadata.parquet").unlink()
        with pytest.raises(LoadError) as exc:
            load_catalog(CatalogConfig(base_path=str(catalog_dir)))
        assert exc.value.country == "uk"
        assert "geometry_metadata.parquet" in exc.value.resource

    def test_unknown_country(self, catalog_dir):
        with pytest.raises(LoadError, match="country 'fr'"):
            load_catalog(CatalogConfig(base_path=str(catalog_dir)), countries=["be", "fr"])

    def test_custom_table_file_names(self, tmp_path, sample_tables, write_catalog):
        root = write_catalog(tmp_path / "renamed", sample_tables)
        for country in sample_tables:
            (root / country / "metric_metadata.parquet").rename(root / country / "metrics.parquet")
        config = CatalogConfig(
            base_path=str(root), paths=CountryMetadataPaths(metrics="metrics.parquet")
        )
        assert len(load_catalog(config)) == 8

    def test_async_load_builds_catalog(self, catalog_dir):
        catalog = asyncio.run(aload_catalog(CatalogConfig(base_path=str(catalog_dir))))
        assert len(catalog) == 8


class TestRemoteLoad:
    def test_load_over_http(self, catalog_dir):
        async def run():
            transport = httpx.MockTransport(_serve_directory(catalog_dir))
            async with httpx.AsyncClient(transport=transport) as client:
                return await load_all(CatalogConfig(base_path=BASE_URL), client=client)

        tables = asyncio.run(run())

        assert list(tables) == ["be", "uk"]
        assert tables["be"].metrics.height == 5
        assert tables["uk"].geometries["level"].to_list() == ["oa", "lsoa"]

    def test_remote_catalog_matches_local(self, catalog_dir):
        async def run():
            transport = httpx.MockTransport(_serve_directory(catalog_dir))
            async with httpx.AsyncClient(transport=transport) as client:
                return await aload_catalog(CatalogConfig(base_path=BASE_URL), client=client)

        remote = asyncio.run(run())
        local = load_catalog(CatalogConfig(base_path=str(catalog_dir)))
        assert remote.combined_frame().equals(local.combined_frame())

    def test_http_error_is_load_error(self, catalog_dir):
        (catalog_dir / "be" / "data_publishers.parquet").unlink()

        async def run():
            transport = httpx.MockTransport(_serve_directory(catalog_dir))
            async with httpx.AsyncClient(transport=transport) as client:
                return await load_all(CatalogConfig(base_path=BASE_URL), client=client)

        with pytest.raises(LoadError) as exc:
            asyncio.run(run())
        assert exc.value.country == "be"
        assert exc.value.resource == f"{BASE_URL}/be/data_publishers.parquet"
        assert "404" in exc.value.reason
