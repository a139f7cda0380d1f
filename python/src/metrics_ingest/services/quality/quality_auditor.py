"""
Data Quality Auditor for normalized provider records.

Computes an advisory report over a fetch result:
1. Completeness: distinct dates present / calendar days requested
2. Freshness: decays linearly to 0 over a week since the latest date
3. Anomalies: negative counts, ratios outside [0, 1], negative positions

The auditor never mutates or drops records.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from ...models.metrics import FetchRequest, MetricRecord, QualityReport
from ...monitoring.metrics import quality_anomalies_total

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _parse_date(value) -> Optional[date]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


class DataQualityAuditor:
    """
    Quality checks parameterised by a provider's field semantics.

    Example:
        >>> auditor = DataQualityAuditor(
        ...     count_fields=("clicks", "impressions"),
        ...     ratio_fields=("ctr",),
        ...     position_fields=("position",),
        ...     freshness_threshold_days=3,
        ... )
        >>> report = auditor.audit(records, request)
        >>> report.completeness
        0.7
    """

    COMPLETENESS_THRESHOLD = 0.9
    FRESHNESS_DECAY_DAYS = 7

    def __init__(
        self,
        count_fields: Sequence[str],
        ratio_fields: Sequence[str],
        position_fields: Sequence[str] = (),
        freshness_threshold_days: int = 3,
        provider: str = "unknown",
        today: Callable[[], date] = _utc_today,
    ):
        self.count_fields = tuple(count_fields)
        self.ratio_fields = tuple(ratio_fields)
        self.position_fields = tuple(position_fields)
        self.freshness_threshold_days = freshness_threshold_days
        self.provider = provider
        self._today = today

    def audit(
        self,
        records: Sequence[MetricRecord],
        request: FetchRequest,
    ) -> QualityReport:
        """
        Build a quality report for ``records`` fetched with ``request``.

        Args:
            records: Normalized records
            request: The request actually sent (after incremental adjustment)

        Returns:
            QualityReport
        """
        if not records:
            report = QualityReport(
                completeness=0.0,
                freshness=0.0,
                anomalies=["No data returned"],
            )
            self._log(report)
            return report

        anomalies: List[str] = []
        completeness = 1.0
        missing_dates: List[str] = []

        if "date" in request.dimensions:
            completeness, missing_dates = self._check_completeness(records, request)
            if completeness < self.COMPLETENESS_THRESHOLD:
                anomalies.append(f"Missing {len(missing_dates)} days of data")

        anomalies.extend(self._check_values(records))

        freshness, stale_message = self._check_freshness(records)
        if stale_message:
            anomalies.append(stale_message)

        report = QualityReport(
            completeness=completeness,
            freshness=freshness,
            anomalies=anomalies,
            missing_dates=missing_dates,
        )
        self._log(report)
        return report

    def _check_completeness(self, records, request: FetchRequest):
        present = {record.get("date") for record in records}
        expected = [
            (request.start_date + timedelta(days=offset)).isoformat()
            for offset in range(request.range_days)
        ]
        missing = [day for day in expected if day not in present]
        completeness = (len(expected) - len(missing)) / len(expected)
        return completeness, missing

    def _check_values(self, records: Sequence[MetricRecord]) -> List[str]:
        anomalies: List[str] = []
        for record in records:
            day = record.get("date") or "unknown date"

            for field in self.count_fields:
                value = record.get(field)
                if isinstance(value, (int, float)) and value < 0:
                    anomalies.append(f"Negative {field} on {day}")

            for field in self.ratio_fields:
                value = record.get(field)
                if isinstance(value, (int, float)) and not 0 <= value <= 1:
                    anomalies.append(f"Invalid {field} ({value}) on {day}")

            for field in self.position_fields:
                value = record.get(field)
                if isinstance(value, (int, float)) and value < 0:
                    anomalies.append(f"Negative {field} on {day}")

        return anomalies

    def _check_freshness(self, records: Sequence[MetricRecord]):
        dates = [d for d in (_parse_date(r.get("date")) for r in records) if d is not None]
        if not dates:
            return 0.0, "No dated records returned"

        days_since_latest = (self._today() - max(dates)).days
        freshness = max(0.0, min(1.0, 1 - days_since_latest / self.FRESHNESS_DECAY_DAYS))

        if days_since_latest > self.freshness_threshold_days:
            return freshness, f"Data is {days_since_latest} days old"
        return freshness, None

    def _log(self, report: QualityReport) -> None:
        if not report.anomalies:
            return
        quality_anomalies_total.labels(provider=self.provider).inc(len(report.anomalies))
        logger.warning(
            f"Data quality issues for {self.provider}: "
            f"completeness={report.completeness:.2f}, freshness={report.freshness:.2f}, "
            f"anomalies={report.anomalies[:5]}"
        )
