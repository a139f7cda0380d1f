"""
Incremental sync cursors.

Remembers, per request shape, when the last successful incremental fetch
finished, and narrows the next request's start date to that day.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from ...models.metrics import FetchRequest

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncCursor:
    """Map of request-shape key -> last successful sync time."""

    def __init__(self, now: Callable[[], datetime] = _utc_now):
        self._now = now
        self._last_sync: Dict[str, datetime] = {}

    def last_sync(self, key: str) -> Optional[datetime]:
        return self._last_sync.get(key)

    def adjust(self, request: FetchRequest, key: str) -> FetchRequest:
        """
        Raise ``request.start_date`` to the last sync date for ``key``.

        The start date is never lowered and never moved past ``end_date``.

        Args:
            request: Original request
            key: Request-shape key (same key the result cache uses)

        Returns:
            The original request or an adjusted copy
        """
        last_sync = self._last_sync.get(key)
        if last_sync is None:
            return request

        sync_date = min(last_sync.date(), request.end_date)
        if sync_date <= request.start_date:
            return request

        logger.info(
            f"Incremental sync: start_date {request.start_date} -> {sync_date}"
        )
        return request.model_copy(update={"start_date": sync_date})

    def record(self, key: str) -> datetime:
        """Record a successful sync for ``key`` at the current time."""
        synced_at = self._now()
        self._last_sync[key] = synced_at
        return synced_at

    def clear(self) -> None:
        self._last_sync.clear()

    def __len__(self) -> int:
        return len(self._last_sync)
