"""
Provider clients for search console and analytics reporting APIs.

Every outbound call passes through:
1. RateGovernor (FIFO queue, per-window quota, 429 requeue)
2. RetryingExecutor (exponential backoff for transient failures)
3. PaginatedFetcher (offset walk until a short page)
"""

from .client import MetricsClient, create_analytics_client
from .deduplicator import Deduplicator
from .error_classifier import classify_error, classify_response, classify_transport_error
from .exceptions import (
    AuthenticationFailedError,
    ErrorKind,
    InvalidRequestError,
    NetworkOrTimeoutError,
    PermissionDeniedError,
    ProviderError,
    QuotaExceededError,
    RateLimitExceededError,
    TransientServerError,
    UnknownProviderError,
)
from .executor import RetryingExecutor
from .normalizer import format_date
from .paginator import PaginatedFetcher
from .profiles import ANALYTICS, SEARCH_CONSOLE, ProviderProfile
from .rate_governor import RateGovernor
from .search_console import SearchConsoleClient, create_search_console_client

__all__ = [
    # Clients
    "MetricsClient",
    "SearchConsoleClient",
    "create_analytics_client",
    "create_search_console_client",
    # Profiles
    "ANALYTICS",
    "SEARCH_CONSOLE",
    "ProviderProfile",
    # Building blocks
    "Deduplicator",
    "PaginatedFetcher",
    "RateGovernor",
    "RetryingExecutor",
    "format_date",
    # Errors
    "ErrorKind",
    "ProviderError",
    "AuthenticationFailedError",
    "PermissionDeniedError",
    "QuotaExceededError",
    "InvalidRequestError",
    "RateLimitExceededError",
    "TransientServerError",
    "NetworkOrTimeoutError",
    "UnknownProviderError",
    "classify_error",
    "classify_response",
    "classify_transport_error",
]
