"""
Metric aggregation with optional group-by.

Count-like measures are reduced with the configured function. Ratio
measures are recomputed from their aggregated parts instead of being
averaged, so rows with small denominators do not skew the result.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ...models.metrics import AggregateSpec, MetricRecord

logger = logging.getLogger(__name__)

GROUP_SEPARATOR = "|"


@dataclass(frozen=True)
class RatioField:
    """
    A measure derived from other measures.

    ``numerator / denominator`` of the reduced measures when ``numerator``
    is set (e.g. ctr = clicks / impressions); otherwise a
    ``denominator``-weighted mean of the field itself (e.g. bounceRate
    weighted by sessions).
    """

    name: str
    denominator: str
    numerator: Optional[str] = None


def _reduce(values: List[float], function: str) -> float:
    if function == "sum":
        return sum(values)
    if function == "average":
        return sum(values) / len(values) if values else 0
    if function == "count":
        return len(values)
    if function == "min":
        return min(values) if values else 0
    if function == "max":
        return max(values) if values else 0
    raise ValueError(f"Unsupported aggregate function: {function}")


def _numeric(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class MetricAggregator:
    """Reduces normalized records per provider field semantics."""

    def __init__(
        self,
        numeric_fields: Sequence[str],
        ratio_fields: Sequence[RatioField] = (),
    ):
        self.numeric_fields = tuple(numeric_fields)
        self.ratio_fields = {ratio.name: ratio for ratio in ratio_fields}

    def aggregate(
        self,
        records: Sequence[MetricRecord],
        spec: AggregateSpec,
    ) -> List[MetricRecord]:
        """
        Aggregate ``records`` according to ``spec``.

        Args:
            records: Normalized records
            spec: Reducer function and optional group-by fields

        Returns:
            One record without group-by, whose ``date`` is the latest date
            in ``records``; otherwise one per group in first-seen order.
            Empty input yields an empty list.
        """
        if not records:
            return []

        if not spec.group_by:
            aggregated = self._aggregate_all(records, spec.function)
            dates = [r.get("date") for r in records if r.get("date")]
            aggregated["date"] = max(dates) if dates else ""
            return [aggregated]

        groups: Dict[str, List[MetricRecord]] = {}
        for record in records:
            key = GROUP_SEPARATOR.join(str(record.get(field) or "") for field in spec.group_by)
            groups.setdefault(key, []).append(record)

        result: List[MetricRecord] = []
        for members in groups.values():
            aggregated = self._aggregate_all(members, spec.function)
            for field in spec.group_by:
                aggregated[field] = members[0].get(field)
            result.append(aggregated)

        logger.debug(
            f"Aggregated {len(records)} records into {len(result)} groups "
            f"by {spec.group_by} ({spec.function})"
        )
        return result

    def _measure_fields(self, records: Sequence[MetricRecord]) -> List[str]:
        fields = list(self.numeric_fields)
        for record in records:
            for key, value in record.items():
                if key not in fields and _numeric(value):
                    fields.append(key)
        return fields

    def _aggregate_all(self, records: Sequence[MetricRecord], function: str) -> MetricRecord:
        aggregated: MetricRecord = {}

        for field in self._measure_fields(records):
            if field in self.ratio_fields:
                continue
            values = [r.get(field) if _numeric(r.get(field)) else 0 for r in records]
            aggregated[field] = _reduce(values, function)

        for name, ratio in self.ratio_fields.items():
            if ratio.numerator is not None:
                aggregated[name] = self._ratio_of_reduced(aggregated, ratio)
            else:
                aggregated[name] = self._weighted_mean(records, ratio)

        return aggregated

    @staticmethod
    def _ratio_of_reduced(aggregated: MetricRecord, ratio: RatioField) -> float:
        """Ratio of the already reduced numerator and denominator."""
        numerator = aggregated.get(ratio.numerator) or 0
        denominator = aggregated.get(ratio.denominator) or 0
        if denominator <= 0:
            return 0.0
        return numerator / denominator

    @staticmethod
    def _weighted_mean(records: Sequence[MetricRecord], ratio: RatioField) -> float:
        def value(record, field):
            v = record.get(field)
            return v if _numeric(v) else 0

        denominator = sum(value(r, ratio.denominator) for r in records)
        if denominator <= 0:
            return 0.0

        return sum(value(r, ratio.name) * value(r, ratio.denominator) for r in records) / denominator
