"""
Provider profiles.

A profile describes everything that differs between providers: endpoint,
request body shape, where the rows live in the response, how a row becomes a
canonical record, and the semantics of each measure (count, ratio,
position). ``MetricsClient`` is generic over a profile.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Tuple
from urllib.parse import quote

from ...models.metrics import FetchRequest, MetricRecord
from ..analytics.aggregator import RatioField
from .normalizer import (
    ANALYTICS_MEASURES,
    SEARCH_CONSOLE_MEASURES,
    normalize_analytics_row,
    normalize_search_console_row,
)


@dataclass(frozen=True)
class ProviderProfile:
    """Static description of one metrics provider."""

    name: str
    api_base_setting: str  # Settings attribute holding the API base URL

    measures: Tuple[str, ...]
    count_fields: Tuple[str, ...]
    ratio_fields: Tuple[RatioField, ...]
    unit_interval_fields: Tuple[str, ...]  # Must lie in [0, 1]
    position_fields: Tuple[str, ...]
    identity_fields: Tuple[str, ...]

    freshness_threshold_days: int
    quota_limit: int
    quota_window_seconds: float
    inter_request_delay: float
    page_size: int

    build_report_path: Callable[[str], str]
    build_report_body: Callable[[FetchRequest, int, int, str], Dict[str, Any]]
    extract_rows: Callable[[Dict[str, Any]], List[Dict[str, Any]]]
    normalize_row: Callable[[Dict[str, Any], FetchRequest], MetricRecord]
    page_metrics_request: Callable[[str, date, date], FetchRequest]


# ============================================================================
# Search Console
# ============================================================================

SEARCH_CONSOLE_PAGE_METRICS_LIMIT = 5000


def encode_site(site_url: str) -> str:
    """Percent-encode a site URL for use as a single path segment."""
    return quote(site_url, safe="")


def _search_console_path(site_url: str) -> str:
    return f"sites/{encode_site(site_url)}/searchAnalytics/query"


def _search_console_body(
    request: FetchRequest,
    offset: int,
    page_size: int,
    timezone: str,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "startDate": request.start_date.isoformat(),
        "endDate": request.end_date.isoformat(),
        "rowLimit": page_size,
        "startRow": offset,
    }
    if request.dimensions:
        body["dimensions"] = list(request.dimensions)
    # type, dimensionFilterGroups, aggregationType, dataState
    body.update(request.filters)
    return body


def _search_console_rows(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    return payload.get("rows") or []


def _search_console_normalize(row: Dict[str, Any], request: FetchRequest) -> MetricRecord:
    return normalize_search_console_row(row, request.dimensions)


def _search_console_page_request(page_url: str, start_date: date, end_date: date) -> FetchRequest:
    return FetchRequest(
        start_date=start_date,
        end_date=end_date,
        dimensions=["date", "query"],
        filters={
            "dimensionFilterGroups": [
                {
                    "groupType": "and",
                    "filters": [
                        {"dimension": "page", "operator": "contains", "expression": page_url},
                    ],
                }
            ]
        },
        page_size=SEARCH_CONSOLE_PAGE_METRICS_LIMIT,
    )


SEARCH_CONSOLE = ProviderProfile(
    name="search_console",
    api_base_setting="SEARCH_CONSOLE_API_BASE",
    measures=SEARCH_CONSOLE_MEASURES,
    count_fields=("clicks", "impressions"),
    ratio_fields=(RatioField(name="ctr", numerator="clicks", denominator="impressions"),),
    unit_interval_fields=("ctr",),
    position_fields=("position",),
    identity_fields=("query", "page"),
    freshness_threshold_days=3,
    quota_limit=600,
    quota_window_seconds=60.0,
    inter_request_delay=0.2,
    page_size=1000,
    build_report_path=_search_console_path,
    build_report_body=_search_console_body,
    extract_rows=_search_console_rows,
    normalize_row=_search_console_normalize,
    page_metrics_request=_search_console_page_request,
)


# ============================================================================
# Analytics
# ============================================================================

ANALYTICS_PAGE_METRICS = (
    "screenPageViews",
    "sessions",
    "totalUsers",
    "bounceRate",
    "averageSessionDuration",
    "conversions",
    "totalRevenue",
)


def normalize_property_id(property_id: str) -> str:
    """Strip an optional ``properties/`` prefix."""
    prefix = "properties/"
    return property_id[len(prefix):] if property_id.startswith(prefix) else property_id


def _analytics_metrics(request: FetchRequest) -> List[str]:
    return list(request.metrics) or list(ANALYTICS_PAGE_METRICS)


def _analytics_path(property_id: str) -> str:
    return f"properties/{normalize_property_id(property_id)}:runReport"


def _analytics_body(
    request: FetchRequest,
    offset: int,
    page_size: int,
    timezone: str,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "dateRanges": [
            {
                "startDate": request.start_date.isoformat(),
                "endDate": request.end_date.isoformat(),
                "name": "date_range",
            }
        ],
        "dimensions": [{"name": name} for name in request.dimensions],
        "metrics": [{"name": name} for name in _analytics_metrics(request)],
        "limit": page_size,
        "offset": offset,
        "keepEmptyRows": False,
    }
    if timezone and timezone != "UTC":
        body["timeZone"] = timezone
    # currencyCode, dimensionFilter, metricFilter, orderBys, cohortSpec
    body.update(request.filters)
    return body


def _analytics_rows(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    return payload.get("rows") or []


def _analytics_normalize(row: Dict[str, Any], request: FetchRequest) -> MetricRecord:
    return normalize_analytics_row(row, request.dimensions, _analytics_metrics(request))


def _analytics_page_request(page_path: str, start_date: date, end_date: date) -> FetchRequest:
    return FetchRequest(
        start_date=start_date,
        end_date=end_date,
        dimensions=["date", "pagePath"],
        metrics=list(ANALYTICS_PAGE_METRICS),
        filters={
            "dimensionFilter": {
                "filter": {
                    "fieldName": "pagePath",
                    "stringFilter": {"matchType": "CONTAINS", "value": page_path},
                }
            }
        },
    )


ANALYTICS = ProviderProfile(
    name="analytics",
    api_base_setting="ANALYTICS_API_BASE",
    measures=ANALYTICS_MEASURES,
    count_fields=("pageViews", "sessions", "users", "conversions", "revenue"),
    ratio_fields=(
        RatioField(name="bounceRate", denominator="sessions"),
        RatioField(name="avgSessionDuration", denominator="sessions"),
    ),
    unit_interval_fields=("bounceRate",),
    position_fields=(),
    identity_fields=("pagePath",),
    freshness_threshold_days=2,
    quota_limit=100,
    quota_window_seconds=60.0,
    inter_request_delay=0.1,
    page_size=10000,
    build_report_path=_analytics_path,
    build_report_body=_analytics_body,
    extract_rows=_analytics_rows,
    normalize_row=_analytics_normalize,
    page_metrics_request=_analytics_page_request,
)
