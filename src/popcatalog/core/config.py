"""Catalog configuration.

Configuration is always passed explicitly to the loader, builder and planner;
nothing in the package reads module-level or environment state. A YAML file
may be used to hold the values:

```yaml
base_path: https://example.org/popgetter/v0.2
geometry_extension: fgb
case_sensitive: true
require_non_empty_joins: true
timeout_sec: 60
paths:
  metrics: metric_metadata.parquet
```
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from popcatalog.core.enums import TableKind


DEFAULT_BASE_PATH = "data"
DEFAULT_GEOMETRY_EXTENSION = "fgb"
COUNTRY_MANIFEST = "countries.txt"


@dataclass(frozen=True)
class CountryMetadataPaths:
    """File names of the per-country metadata tables."""

    metrics: str = "metric_metadata.parquet"
    geometries: str = "geometry_metadata.parquet"
    source_data_releases: str = "source_data_releases.parquet"
    data_publishers: str = "data_publishers.parquet"
    countries: str = "country_metadata.parquet"

    def for_table(self, kind: TableKind) -> str:
        return getattr(self, kind.value)


@dataclass(frozen=True)
class CatalogConfig:
    """Settings for loading and querying the catalog.

    Attributes:
        base_path: Local directory or http(s) URL holding `countries.txt` and
            one sub-directory per country.
        geometry_base_path: Where geometry artifacts live; defaults to `base_path`.
        geometry_extension: Extension of geometry artifacts.
        case_sensitive: Whether pattern expansion is case sensitive.
        require_non_empty_joins: Fail the build when a join step drops every row.
        timeout_sec: HTTP timeout for remote loads.
        paths: Per-country table file names.
    """

    base_path: str = DEFAULT_BASE_PATH
    geometry_base_path: Optional[str] = None
    geometry_extension: str = DEFAULT_GEOMETRY_EXTENSION
    case_sensitive: bool = True
    require_non_empty_joins: bool = True
    timeout_sec: float = 60.0
    paths: CountryMetadataPaths = field(default_factory=CountryMetadataPaths)

    @property
    def is_remote(self) -> bool:
        return self.base_path.startswith(("http://", "https://"))

    def with_base_path(self, base_path: str) -> "CatalogConfig":
        return replace(self, base_path=base_path)


def config_from_dict(data: Dict[str, Any]) -> CatalogConfig:
    """Build a CatalogConfig from a plain mapping, ignoring unknown keys."""
    known = {f.name for f in fields(CatalogConfig)} - {"paths"}
    kwargs: Dict[str, Any] = {k: v for k, v in data.items() if k in known}
    if "base_path" in kwargs:
        kwargs["base_path"] = str(kwargs["base_path"]).rstrip("/")
    if "timeout_sec" in kwargs:
        kwargs["timeout_sec"] = float(kwargs["timeout_sec"])
    paths_data = data.get("paths") or {}
    path_names = {f.name for f in fields(CountryMetadataPaths)}
    unknown = set(paths_data) - path_names
    if unknown:
        raise ValueError(f"Unknown table names under 'paths': {sorted(unknown)}")
    kwargs["paths"] = CountryMetadataPaths(**{k: str(v) for k, v in paths_data.items()})
    return CatalogConfig(**kwargs)


def load_config(config_file: Path) -> CatalogConfig:
    """Load configuration from a YAML file."""
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")
    with config_file.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_file}")
    return config_from_dict(data)
