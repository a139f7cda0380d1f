"""
Metrics ingestion for search console and analytics reporting APIs.

Quota-governed, retrying, cached report fetching that yields canonical
daily metric records with data quality reports.
"""

from .core.config import ClientConfig, Settings, settings
from .models.metrics import (
    AggregateSpec,
    FetchOptions,
    FetchRequest,
    FetchResult,
    QualityReport,
    SitemapInfo,
    SitemapResult,
)
from .services.providers import (
    MetricsClient,
    ProviderError,
    SearchConsoleClient,
    create_analytics_client,
    create_search_console_client,
)

__version__ = "0.1.0"

__all__ = [
    "AggregateSpec",
    "ClientConfig",
    "FetchOptions",
    "FetchRequest",
    "FetchResult",
    "MetricsClient",
    "ProviderError",
    "QualityReport",
    "SearchConsoleClient",
    "Settings",
    "SitemapInfo",
    "SitemapResult",
    "create_analytics_client",
    "create_search_console_client",
    "settings",
]
