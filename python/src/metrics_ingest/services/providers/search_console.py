"""
Search console client: search analytics plus sitemap management.

Sitemap submissions never raise on provider failures; they report
``SitemapResult(success=False, message=...)`` so callers publishing content
can carry on.
"""

import logging
from typing import Any, List, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import ValidationError

from ...core.config import ClientConfig
from ...models.metrics import SitemapInfo, SitemapResult
from .client import MetricsClient
from .exceptions import ProviderError, UnknownProviderError
from .profiles import SEARCH_CONSOLE, encode_site

logger = logging.getLogger(__name__)

# Fallback locations tried, in order, after the detected sitemap
SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_blog.xml", "/blogs/sitemap.xml")


class SearchConsoleClient(MetricsClient):
    """
    Search console metrics client with sitemap operations.

    Example:
        >>> client = SearchConsoleClient(ClientConfig(access_token=token, account_id=site))
        >>> await client.submit_sitemap_for_article("https://example.com/blog/post")
        SitemapResult(success=True, message='Sitemap submitted: https://example.com/sitemap.xml')
    """

    def __init__(self, config: ClientConfig, **kwargs: Any):
        super().__init__(SEARCH_CONSOLE, config, **kwargs)

    def _sitemaps_path(self) -> str:
        return f"sites/{encode_site(self.config.account_id)}/sitemaps"

    async def list_sitemaps(self) -> List[SitemapInfo]:
        """
        List the sitemaps registered for the site.

        Entries the provider returns without a usable ``path`` are skipped.

        Raises:
            ProviderError: Classified provider failure after retries
        """
        payload = await self.executor.execute(lambda: self._send("GET", self._sitemaps_path()))
        if not isinstance(payload, dict):
            raise UnknownProviderError(f"Unexpected sitemap listing: {type(payload).__name__}")

        sitemaps: List[SitemapInfo] = []
        for item in payload.get("sitemap") or []:
            try:
                sitemaps.append(SitemapInfo.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed sitemap entry: {e.error_count()} errors")

        logger.debug(f"Listed {len(sitemaps)} sitemaps for {self.config.account_id}")
        return sitemaps

    async def detect_sitemap_url(self) -> Optional[str]:
        """
        Pick the site's primary sitemap.

        Preference: a plain ``sitemap.xml`` over an index, then any
        ``sitemap``-typed entry, then the first listed entry.

        Returns:
            Sitemap path, or None if nothing is registered or listing failed
        """
        try:
            sitemaps = await self.list_sitemaps()
        except ProviderError as e:
            logger.warning(f"Failed to detect sitemap URL: {e}")
            return None

        if not sitemaps:
            return None

        for sitemap in sitemaps:
            if (
                "sitemap.xml" in sitemap.path
                and "sitemap_index" not in sitemap.path
                and not sitemap.is_sitemaps_index
                and sitemap.type in (None, "", "sitemap")
            ):
                return sitemap.path

        for sitemap in sitemaps:
            if sitemap.is_sitemaps_index or "sitemap_index" in sitemap.path:
                return sitemap.path

        for sitemap in sitemaps:
            if sitemap.type == "sitemap":
                return sitemap.path

        return sitemaps[0].path or None

    async def submit_sitemap(self, feedpath: str) -> SitemapResult:
        """
        Submit (or resubmit) a sitemap.

        Args:
            feedpath: Sitemap URL or site-relative path

        Returns:
            SitemapResult; provider failures are reported, not raised
        """
        path = f"{self._sitemaps_path()}/{encode_site(feedpath)}"
        try:
            await self.executor.execute(lambda: self._send("PUT", path))
        except ProviderError as e:
            logger.error(f"Sitemap submission failed for {feedpath}: {e}")
            return SitemapResult(success=False, message=str(e))

        logger.info(f"Sitemap submitted: {feedpath}")
        return SitemapResult(success=True, message=f"Sitemap submitted: {feedpath}")

    async def submit_sitemap_url(self, sitemap_url: str) -> SitemapResult:
        """
        Submit a sitemap given by URL.

        A URL on the site's own host is reduced to its path and query.
        """
        return await self.submit_sitemap(self._relative_to_site(sitemap_url))

    async def submit_sitemap_for_article(self, article_url: str) -> SitemapResult:
        """
        Submit a sitemap covering ``article_url``.

        Tries the detected sitemap first, then each of ``SITEMAP_PATHS`` on
        the article's host, stopping at the first success.
        """
        parts = urlsplit(article_url)
        if not parts.scheme or not parts.netloc:
            return SitemapResult(success=False, message=f"Invalid article URL: {article_url}")
        base_url = f"{parts.scheme}://{parts.netloc}"

        candidates: List[str] = []
        detected = await self.detect_sitemap_url()
        if detected:
            candidates.append(self._absolute(detected, base_url))
        for path in SITEMAP_PATHS:
            url = f"{base_url}{path}"
            if url not in candidates:
                candidates.append(url)

        last_message: Optional[str] = None
        for url in candidates:
            result = await self.submit_sitemap(url)
            if result.success:
                return SitemapResult(success=True, message=f"Sitemap submitted: {url}")
            last_message = result.message

        return SitemapResult(
            success=False,
            message=last_message or "Failed to submit sitemap at any known location",
        )

    def _relative_to_site(self, sitemap_url: str) -> str:
        target = urlsplit(sitemap_url)
        site = urlsplit(self.config.account_id)
        if not target.netloc or not site.netloc or target.netloc.lower() != site.netloc.lower():
            return sitemap_url

        relative = target.path or "/"
        if target.query:
            relative = f"{relative}?{target.query}"
        return relative

    @staticmethod
    def _absolute(path: str, base_url: str) -> str:
        if urlsplit(path).netloc:
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{base_url}{path}"


def create_search_console_client(
    access_token: str,
    site_url: str,
    http_client: Optional[httpx.AsyncClient] = None,
    **overrides: Any,
) -> SearchConsoleClient:
    """
    Build a search console client.

    Args:
        access_token: OAuth bearer token
        site_url: Property URL (``https://example.com/`` or ``sc-domain:example.com``)
        http_client: Optional shared HTTP client
        **overrides: Any other ``ClientConfig`` field

    Raises:
        pydantic.ValidationError: Invalid configuration
    """
    config = ClientConfig(access_token=access_token, account_id=site_url, **overrides)
    return SearchConsoleClient(config, http_client=http_client)
