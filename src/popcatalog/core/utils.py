"""Core utility functions for popcatalog.

This module provides shared path helpers used by the loader and catalog.
"""

from __future__ import annotations

from popcatalog.core.config import CatalogConfig


def join_location(base: str, *parts: str) -> str:
    """Join a local directory or URL with further path segments.

    Uses forward slashes for both so the same layout works on disk and over
    HTTP.

    Examples:
        >>> join_location("https://host/data/", "be", "metric_metadata.parquet")
        'https://host/data/be/metric_metadata.parquet'
        >>> join_location("data", "countries.txt")
        'data/countries.txt'
    """
    segments = [base.rstrip("/")] + [p.strip("/") for p in parts if p]
    return "/".join(segments)


def get_geometry_path(config: CatalogConfig, filename_stem: str) -> str:
    """Get the location of the geometry artifact for a filename stem.

    Args:
        config: Catalog configuration; `geometry_base_path` falls back to
            `base_path` when unset.
        filename_stem: The geometry's `filename_stem` from the catalog.

    Returns:
        `<base>/<stem>.<ext>` as a string.

    Examples:
        >>> get_geometry_path(CatalogConfig(base_path="data"), "be/geometries/municipality")
        'data/be/geometries/municipality.fgb'
    """
    base = config.geometry_base_path or config.base_path
    return join_location(base, f"{filename_stem}.{config.geometry_extension}")
