"""High level entry point bundling a built Catalog with its configuration.

Synchronous methods compute directly. The `a*` variants run the same work in
a worker thread via `asyncio.to_thread`, so an async service stays
responsive while joins and filters run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

import httpx

from popcatalog.core.config import CatalogConfig
from popcatalog.core.query.catalog import Catalog
from popcatalog.core.query.ids import MetricId
from popcatalog.core.query.patterns import expand_pattern
from popcatalog.core.query.search import SearchRequest, SearchResults
from popcatalog.core.query.selection import FullSelectionPlan, plan_selection
from popcatalog.sources.loader import aload_catalog, load_catalog


logger = logging.getLogger(__name__)


class PopCatalog:
    """A loaded catalog plus the operations callers need."""

    def __init__(self, catalog: Catalog, config: Optional[CatalogConfig] = None) -> None:
        self.catalog = catalog
        self.config = config or catalog.config

    @classmethod
    def load(
        cls,
        config: Optional[CatalogConfig] = None,
        *,
        countries: Optional[Iterable[str]] = None,
    ) -> "PopCatalog":
        config = config or CatalogConfig()
        logger.debug("config: %s", config)
        return cls(load_catalog(config, countries=countries), config)

    @classmethod
    async def aload(
        cls,
        config: Optional[CatalogConfig] = None,
        *,
        countries: Optional[Iterable[str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "PopCatalog":
        config = config or CatalogConfig()
        catalog = await aload_catalog(config, countries=countries, client=client)
        return cls(catalog, config)

    def search(self, request: SearchRequest) -> SearchResults:
        return request.search_results(self.catalog.combined())

    def expand(self, metric_id: MetricId) -> List[MetricId]:
        return expand_pattern(
            self.catalog.combined(), metric_id, case_sensitive=self.config.case_sensitive
        )

    def plan(
        self,
        requested_metrics: Iterable[MetricId],
        geometry: Optional[str] = None,
        years: Optional[Iterable[str]] = None,
    ) -> FullSelectionPlan:
        return plan_selection(
            self.catalog.combined(),
            list(requested_metrics),
            geometry=geometry,
            years=None if years is None else list(years),
            case_sensitive=self.config.case_sensitive,
        )

    async def asearch(self, request: SearchRequest) -> SearchResults:
        return await asyncio.to_thread(self.search, request)

    async def aexpand(self, metric_id: MetricId) -> List[MetricId]:
        return await asyncio.to_thread(self.expand, metric_id)

    async def aplan(
        self,
        requested_metrics: Iterable[MetricId],
        geometry: Optional[str] = None,
        years: Optional[Iterable[str]] = None,
    ) -> FullSelectionPlan:
        return await asyncio.to_thread(
            self.plan,
            list(requested_metrics),
            geometry,
            None if years is None else list(years),
        )
