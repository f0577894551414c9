"""Load per-country metadata tables from a local directory or a remote URL.

Layout under `config.base_path`:

- `countries.txt`: one country code per line
- `<country>/<table file>` for each of the five tables (see CountryMetadataPaths)

Loading fans out over countries and tables concurrently. Any failure aborts
the whole load with a LoadError; there is no partial catalog.
"""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import httpx
import polars as pl

from popcatalog.core.config import COUNTRY_MANIFEST, CatalogConfig
from popcatalog.core.enums import TableKind
from popcatalog.core.errors import LoadError
from popcatalog.core.query.catalog import Catalog, CountryTables, build_catalog
from popcatalog.core.utils import join_location


logger = logging.getLogger(__name__)


def parse_country_manifest(text: str) -> List[str]:
    """Return country codes from manifest text, skipping blanks and `#` comments."""
    codes: List[str] = []
    for line in text.splitlines():
        code = line.split("#", 1)[0].strip()
        if code and code not in codes:
            codes.append(code)
    return codes


async def _fetch_bytes(client: httpx.AsyncClient, url: str) -> bytes:
    response = await client.get(url)
    response.raise_for_status()
    return response.content


async def load_country_manifest(
    config: CatalogConfig, client: Optional[httpx.AsyncClient] = None
) -> List[str]:
    location = join_location(config.base_path, COUNTRY_MANIFEST)
    try:
        if client is not None:
            text = (await _fetch_bytes(client, location)).decode("utf-8")
        else:
            text = await asyncio.to_thread(Path(location).read_text, encoding="utf-8")
    except (httpx.HTTPError, OSError, UnicodeDecodeError) as e:
        raise LoadError(None, location, str(e)) from e
    codes = parse_country_manifest(text)
    logger.info("Detected country names: %s", codes)
    return codes


async def load_table(
    country: str,
    kind: TableKind,
    config: CatalogConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> pl.DataFrame:
    """Load one metadata table of one country."""
    location = join_location(config.base_path, country, config.paths.for_table(kind))
    logger.info("Attempting to load dataframe from %s", location)
    try:
        if client is not None:
            payload = await _fetch_bytes(client, location)
            df = await asyncio.to_thread(pl.read_parquet, io.BytesIO(payload))
        else:
            df = await asyncio.to_thread(pl.read_parquet, location)
    except (httpx.HTTPError, OSError, pl.exceptions.PolarsError) as e:
        raise LoadError(country, location, str(e)) from e
    logger.debug("Loaded %s for %s with shape %s", kind.value, country, df.shape)
    return df


async def load_country(
    country: str, config: CatalogConfig, client: Optional[httpx.AsyncClient] = None
) -> CountryTables:
    """Load all five tables of one country concurrently."""
    frames = await asyncio.gather(
        *(load_table(country, kind, config, client) for kind in TableKind)
    )
    return CountryTables(**{kind.value: df for kind, df in zip(TableKind, frames)})


async def load_all(
    config: CatalogConfig,
    *,
    countries: Optional[Iterable[str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, CountryTables]:
    """Load tables for every country in the manifest (or the given countries).

    A remote `base_path` uses `client` when given, otherwise a client is
    created for the duration of the load.

    Raises:
        LoadError: The manifest or any country's table failed to load.
    """
    own_client = client is None and config.is_remote
    if own_client:
        client = httpx.AsyncClient(timeout=config.timeout_sec, follow_redirects=True)
    remote_client = client if config.is_remote else None
    try:
        codes = (
            list(countries)
            if countries is not None
            else await load_country_manifest(config, remote_client)
        )
        results = await asyncio.gather(
            *(load_country(c, config, remote_client) for c in codes),
            return_exceptions=True,
        )
    finally:
        if own_client and client is not None:
            await client.aclose()

    loaded: Dict[str, CountryTables] = {}
    for code, result in zip(codes, results):
        if isinstance(result, BaseException):
            raise result
        loaded[code] = result
    logger.info("Loaded metadata for %d countries", len(loaded))
    return loaded


async def aload_catalog(
    config: CatalogConfig,
    *,
    countries: Optional[Iterable[str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Catalog:
    """Load and build a Catalog without blocking the running event loop."""
    tables = await load_all(config, countries=countries, client=client)
    return await asyncio.to_thread(build_catalog, tables, config)


def load_catalog(
    config: CatalogConfig, *, countries: Optional[Iterable[str]] = None
) -> Catalog:
    """Synchronous entry point: load every country and build the Catalog."""
    tables = asyncio.run(load_all(config, countries=countries))
    return build_catalog(tables, config)
