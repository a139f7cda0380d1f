"""
Metric Normalizer.

Maps provider rows onto canonical metric records:

- Search console rows carry positional ``keys`` aligned with the requested
  dimensions plus fixed ``clicks``/``impressions``/``ctr``/``position``
- Analytics rows carry ``dimensionValues`` and ``metricValues`` aligned with
  the requested dimension and metric names

Known names are mapped onto canonical fields, unknown names are kept
verbatim, and dates are always emitted as ``YYYY-MM-DD``.
"""

import re
from typing import Any, Dict, List, Sequence

from ...models.metrics import MetricRecord


ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
COMPACT_DATE = re.compile(r"^\d{8}$")

SEARCH_CONSOLE_MEASURES = ("clicks", "impressions", "ctr", "position")

ANALYTICS_MEASURES = (
    "pageViews",
    "sessions",
    "users",
    "bounceRate",
    "avgSessionDuration",
    "conversions",
    "revenue",
)

# Provider metric name -> canonical field
ANALYTICS_METRIC_ALIASES: Dict[str, str] = {
    "screenPageViews": "pageViews",
    "sessions": "sessions",
    "totalUsers": "users",
    "activeUsers": "users",
    "bounceRate": "bounceRate",
    "averageSessionDuration": "avgSessionDuration",
    "conversions": "conversions",
    "keyEvents": "conversions",
    "totalRevenue": "revenue",
    "purchaseRevenue": "revenue",
}


def format_date(value: str) -> str:
    """
    Normalize a provider date to ``YYYY-MM-DD``.

    Accepts ``YYYYMMDD`` or any string starting with ``YYYY-MM-DD``
    (e.g. an hourly ``2026-01-05T13:00:00Z`` key). Other values are
    returned unchanged.
    """
    if not value:
        return value
    if COMPACT_DATE.match(value):
        return f"{value[0:4]}-{value[4:6]}-{value[6:8]}"
    if ISO_DATE_PREFIX.match(value):
        return value[:10]
    return value


def is_canonical_date(value: Any) -> bool:
    return isinstance(value, str) and len(value) == 10 and bool(ISO_DATE_PREFIX.match(value))


def _to_number(value: Any) -> float:
    """Coerce a provider metric value; anything unparseable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() and "." not in str(value) else number


def normalize_search_console_row(
    row: Dict[str, Any],
    dimensions: Sequence[str],
) -> MetricRecord:
    """
    Convert one search analytics row into a canonical record.

    Args:
        row: ``{"keys": [...], "clicks": .., "impressions": .., "ctr": .., "position": ..}``
        dimensions: Dimension names in request order

    Returns:
        Canonical metric record
    """
    keys: List[str] = row.get("keys") or []
    record: MetricRecord = {
        measure: _to_number(row.get(measure)) for measure in SEARCH_CONSOLE_MEASURES
    }

    for index, dimension in enumerate(dimensions):
        if index >= len(keys) or not keys[index]:
            continue
        value = keys[index]
        record[dimension] = format_date(value) if dimension == "date" else value

    if "date" not in record:
        candidate = format_date(keys[0]) if keys else ""
        record["date"] = candidate if is_canonical_date(candidate) else ""

    # Unmapped row fields are preserved
    for key, value in row.items():
        if key != "keys" and key not in record:
            record[key] = value

    return record


def normalize_analytics_row(
    row: Dict[str, Any],
    dimensions: Sequence[str],
    metrics: Sequence[str],
) -> MetricRecord:
    """
    Convert one analytics report row into a canonical record.

    Args:
        row: ``{"dimensionValues": [{"value": ..}], "metricValues": [{"value": ..}]}``
        dimensions: Dimension names in request order
        metrics: Metric names in request order

    Returns:
        Canonical metric record with every canonical measure present
    """
    dimension_values = [item.get("value", "") for item in row.get("dimensionValues") or []]
    metric_values = [item.get("value") for item in row.get("metricValues") or []]

    record: MetricRecord = {measure: 0 for measure in ANALYTICS_MEASURES}

    for index, dimension in enumerate(dimensions):
        if index >= len(dimension_values):
            break
        value = dimension_values[index]
        record[dimension] = format_date(value) if dimension == "date" else value

    for index, metric in enumerate(metrics):
        if index >= len(metric_values):
            break
        field = ANALYTICS_METRIC_ALIASES.get(metric, metric)
        record[field] = _to_number(metric_values[index])

    if not record.get("date"):
        first_value = dimension_values[0] if dimension_values else ""
        candidate = format_date(first_value)
        record["date"] = candidate if is_canonical_date(candidate) else ""

    return record
