"""
Row deduplication across pages and polls.

Two keys are tracked per record:
- identity key (``date|query|page`` style), scoped to one paginated fetch,
  catches repeated rows across its pages
- SHA256 content hash, kept for the client's lifetime, catches unchanged
  rows re-delivered by later polls
"""

import hashlib
import json
import logging
from typing import Iterable, List, Optional, Sequence, Set

from ...models.metrics import MetricRecord
from ...monitoring.metrics import dedup_dropped_rows_total

logger = logging.getLogger(__name__)

IDENTITY_SEPARATOR = "|"


def content_hash(record: MetricRecord) -> str:
    """SHA256 of the record's canonical JSON form."""
    payload = json.dumps(record, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode()).hexdigest()


class Deduplicator:
    """Drops records whose identity key or content hash was already seen."""

    def __init__(self, identity_fields: Sequence[str], provider: str = "unknown"):
        """
        Args:
            identity_fields: Dimension fields appended to ``date`` in the
                identity key (e.g. ``("query", "page")``)
            provider: Provider name (metrics label)
        """
        self.identity_fields = tuple(identity_fields)
        self.provider = provider
        self._seen_hashes: Set[str] = set()

    def identity_key(
        self,
        record: MetricRecord,
        extra_fields: Iterable[str] = (),
    ) -> str:
        fields = ["date", *self.identity_fields]
        fields.extend(f for f in extra_fields if f not in fields)
        return IDENTITY_SEPARATOR.join(str(record.get(f) or "") for f in fields)

    def deduplicate(
        self,
        records: Sequence[MetricRecord],
        dimensions: Optional[Sequence[str]] = None,
        seen_keys: Optional[Set[str]] = None,
    ) -> List[MetricRecord]:
        """
        Return records not seen before, preserving order.

        Args:
            records: Normalized records
            dimensions: Requested dimensions; any beyond the identity fields
                are added to the identity key so distinct breakdowns
                (e.g. per country) are not collapsed
            seen_keys: Identity keys already seen in this fetch; pass the
                same set for every page of one streamed fetch
        """
        if seen_keys is None:
            seen_keys = set()
        unique: List[MetricRecord] = []
        extra_fields = list(dimensions or ())

        for record in records:
            key = self.identity_key(record, extra_fields)
            data_hash = content_hash(record)

            if key in seen_keys or data_hash in self._seen_hashes:
                continue

            seen_keys.add(key)
            self._seen_hashes.add(data_hash)
            unique.append(record)

        dropped = len(records) - len(unique)
        if dropped:
            dedup_dropped_rows_total.labels(provider=self.provider).inc(dropped)
            logger.info(f"Dropped {dropped} duplicate rows ({len(unique)} kept)")

        return unique

    @property
    def seen_count(self) -> int:
        return len(self._seen_hashes)

    def reset(self) -> None:
        """Forget every content hash seen so far."""
        self._seen_hashes.clear()
