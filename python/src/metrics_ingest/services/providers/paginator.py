"""
Offset-based pagination over provider report endpoints.

A page shorter than ``page_size`` ends the walk. When the total row count is
an exact multiple of ``page_size`` one extra, empty page is requested.
"""

import logging
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from ...monitoring.metrics import provider_pages_fetched_total
from .executor import RetryingExecutor

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int, int], Awaitable[List[Any]]]


class PaginatedFetcher:
    """Drives the executor page by page, advancing the offset."""

    def __init__(self, executor: RetryingExecutor, max_pages: Optional[int] = None):
        self.executor = executor
        self.max_pages = max_pages

    async def iter_pages(
        self,
        fetch_page: PageFetcher,
        page_size: int,
        start_offset: int = 0,
    ) -> AsyncIterator[List[Any]]:
        """
        Yield pages of raw rows.

        A caller that stops iterating stops further requests; nothing else
        needs cancelling.

        Args:
            fetch_page: ``fetch_page(offset, page_size)`` performing one request
            page_size: Rows requested per page
            start_offset: Offset of the first page
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        offset = start_offset
        pages = 0

        while True:
            rows = await self.executor.execute(
                lambda offset=offset: fetch_page(offset, page_size)
            )
            rows = rows or []
            pages += 1
            provider_pages_fetched_total.labels(provider=self.executor.governor.provider).inc()

            logger.debug(f"Fetched page {pages}: offset={offset}, rows={len(rows)}")
            yield rows

            if len(rows) < page_size:
                break
            if self.max_pages is not None and pages >= self.max_pages:
                logger.warning(f"Stopping pagination at max_pages={self.max_pages}")
                break

            offset += page_size

    async def fetch_all(
        self,
        fetch_page: PageFetcher,
        page_size: int,
        start_offset: int = 0,
    ) -> List[Any]:
        """Fetch every page and merge the rows in order."""
        merged: List[Any] = []
        async for rows in self.iter_pages(fetch_page, page_size, start_offset):
            merged.extend(rows)

        logger.info(f"Fetched {len(merged)} rows starting at offset {start_offset}")
        return merged
