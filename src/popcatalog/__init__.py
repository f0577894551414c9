"""popcatalog: federated population-statistics metadata catalog.

Loads per-country metadata tables, joins them into one read-only view and
resolves metric identifiers, searches and selection plans against it.
"""

__all__ = [
    "__version__",
    "PopCatalog",
    "CatalogConfig",
    "MetricId",
    "SearchRequest",
    "SearchText",
]

__version__ = "0.1.0"

from .client import PopCatalog  # noqa: E402
from .core.config import CatalogConfig  # noqa: E402
from .core.query import MetricId, SearchRequest, SearchText  # noqa: E402
