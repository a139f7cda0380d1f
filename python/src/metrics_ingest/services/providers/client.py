"""
Metrics client facade.

Composes the read path for one provider account:

    cache lookup -> incremental adjust -> paginate (governor + retry)
        -> normalize -> deduplicate -> audit -> aggregate -> cache store

Each client exclusively owns its cache, rate governor, deduplicator and
sync cursor; nothing is shared between instances.

Example:
    async with create_search_console_client(token, "https://example.com/") as client:
        records = await client.fetch_metrics(
            FetchRequest(start_date="2026-01-01", end_date="2026-01-07", dimensions=["date"])
        )
"""

import asyncio
import logging
import time
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set

import httpx

from ...core.config import ClientConfig, Settings, settings as default_settings
from ...models.metrics import (
    FetchOptions,
    FetchRequest,
    FetchResult,
    MetricRecord,
)
from ...monitoring.metrics import cache_requests_total, provider_requests_total
from ..analytics.aggregator import MetricAggregator
from ..cache.result_cache import ResultCache
from ..cache.sync_cursor import SyncCursor
from ..quality.quality_auditor import DataQualityAuditor
from .deduplicator import Deduplicator
from .error_classifier import classify_response
from .exceptions import UnknownProviderError
from .executor import RetryingExecutor
from .paginator import PaginatedFetcher
from .profiles import ANALYTICS, ProviderProfile
from .rate_governor import RateGovernor

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MetricsClient:
    """
    Generic provider client driven by a ``ProviderProfile``.

    Use it as an async context manager: entering starts the periodic cache
    sweep and leaving calls ``close()``. Without ``async with`` expired
    entries are still evicted on read, but ``close()`` must be awaited to
    release an owned HTTP client.

    Args:
        profile: Provider wire shape and field semantics
        config: Per-tenant credentials and limits
        http_client: Optional shared ``httpx.AsyncClient``; when omitted the
            client creates and owns one
        app_settings: Process-wide defaults (defaults to ``settings``)
        sleep: Cooperative sleep for quota waits, delays and backoff
        clock: Monotonic clock for quota windows and cache expiry
        today: UTC date used for freshness
        now: UTC timestamp recorded by incremental sync
    """

    def __init__(
        self,
        profile: ProviderProfile,
        config: ClientConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        app_settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = _utc_today,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.profile = profile
        self.config = config
        self._settings = app_settings or default_settings

        self.api_base = getattr(self._settings, profile.api_base_setting).rstrip("/")
        self.timeout_seconds = config.timeout_seconds or self._settings.HTTP_TIMEOUT_SECONDS
        self._http = http_client
        self._owns_http = http_client is None

        self.governor = RateGovernor(
            provider=profile.name,
            quota_limit=self._pick(config.quota_limit, profile.quota_limit),
            quota_window_seconds=self._pick(config.quota_window_seconds, profile.quota_window_seconds),
            inter_request_delay=self._pick(config.inter_request_delay, profile.inter_request_delay),
            default_retry_after=self._pick(
                config.default_retry_after,
                self._settings.RATE_LIMIT_DEFAULT_RETRY_AFTER_SECONDS,
            ),
            max_rate_limit_requeues=self._pick(config.max_rate_limit_requeues, 3),
            clock=clock,
            sleep=sleep,
        )
        self.executor = RetryingExecutor(
            self.governor,
            max_retries=self._pick(config.max_retries, self._settings.MAX_RETRIES),
            initial_delay=self._pick(
                config.initial_retry_delay, self._settings.RETRY_INITIAL_DELAY_SECONDS
            ),
            backoff_multiplier=self._pick(
                config.backoff_multiplier, self._settings.RETRY_BACKOFF_MULTIPLIER
            ),
            sleep=sleep,
        )
        self.paginator = PaginatedFetcher(self.executor)

        self.cache = ResultCache(
            ttl_seconds=self._pick(config.cache_ttl_seconds, self._settings.CACHE_TTL_SECONDS),
            clock=clock,
        )
        self.cache_sweep_interval = self._pick(
            config.cache_sweep_interval_seconds,
            self._settings.CACHE_SWEEP_INTERVAL_SECONDS,
        )
        self.sync_cursor = SyncCursor(now=now)
        self.deduplicator = Deduplicator(profile.identity_fields, provider=profile.name)
        self.auditor = DataQualityAuditor(
            count_fields=profile.count_fields,
            ratio_fields=profile.unit_interval_fields,
            position_fields=profile.position_fields,
            freshness_threshold_days=profile.freshness_threshold_days,
            provider=profile.name,
            today=today,
        )
        self.aggregator = MetricAggregator(profile.measures, profile.ratio_fields)

        logger.info(
            f"{type(self).__name__} initialized: provider={profile.name}, "
            f"account={config.account_id}, quota={self.governor.quota_limit}"
        )

    @staticmethod
    def _pick(value, fallback):
        return fallback if value is None else value

    # ========================================================================
    # Transport
    # ========================================================================

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
            self._owns_http = True
        return self._http

    def _url(self, path: str) -> str:
        return f"{self.api_base}/{path}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.access_token}",
            "Content-Type": "application/json",
        }

    async def _send(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Perform one HTTP request and classify any non-2xx or undecodable response.

        Raises:
            ProviderError: Classified failure
            httpx.TransportError: Network failure (classified by the executor)
        """
        response = await self._get_http().request(
            method,
            self._url(path),
            json=json,
            headers=self._headers(),
        )

        if response.is_success:
            try:
                payload = response.json() if response.content else {}
            except ValueError:
                error = UnknownProviderError(
                    f"Undecodable response body from {method} {path}",
                    status_code=response.status_code,
                )
            else:
                provider_requests_total.labels(provider=self.profile.name, outcome="success").inc()
                return payload
        else:
            error = classify_response(response)

        provider_requests_total.labels(provider=self.profile.name, outcome=error.kind.value).inc()
        logger.debug(f"{method} {path} failed: {error!r}")
        raise error

    async def _fetch_page(self, request: FetchRequest, offset: int, page_size: int) -> List[Dict[str, Any]]:
        body = self.profile.build_report_body(request, offset, page_size, self.config.timezone)
        payload = await self._send(
            "POST",
            self.profile.build_report_path(self.config.account_id),
            json=body,
        )
        return self.profile.extract_rows(payload)

    # ========================================================================
    # Read path
    # ========================================================================

    def _cache_key(self, request: FetchRequest, options: FetchOptions) -> str:
        payload = {"request": request.canonical_payload()}
        if options.aggregate is not None:
            payload["aggregate"] = options.aggregate.model_dump(mode="json")
        return ResultCache.make_key(self.profile.name, self.config.account_id, payload)

    def _sync_key(self, request: FetchRequest) -> str:
        return ResultCache.make_key(
            self.profile.name,
            self.config.account_id,
            request.canonical_payload(),
        )

    def _ensure_sweeper(self) -> None:
        if self.config.enable_caching and not self.cache.sweeper_running:
            self.cache.start_sweeper(self.cache_sweep_interval)

    async def fetch_metrics_with_report(
        self,
        request: FetchRequest,
        options: Optional[FetchOptions] = None,
    ) -> FetchResult:
        """
        Fetch canonical records together with their quality report.

        Args:
            request: Report request
            options: Cache, incremental, validation and aggregation switches

        Returns:
            FetchResult; ``quality`` is None on a cache hit or when
            validation is disabled

        Raises:
            ProviderError: Classified provider failure after retries
        """
        options = options or FetchOptions()
        caching = options.use_cache and self.config.enable_caching
        cache_key = self._cache_key(request, options)

        if caching:
            cached = self.cache.get(cache_key)
            if cached is not None:
                cache_requests_total.labels(provider=self.profile.name, result="hit").inc()
                logger.info(f"Cache hit for {self.profile.name} report ({len(cached)} records)")
                return FetchResult(records=cached, from_cache=True)
            cache_requests_total.labels(provider=self.profile.name, result="miss").inc()

        sync_key = self._sync_key(request)
        effective = self.sync_cursor.adjust(request, sync_key) if options.incremental else request

        page_size = effective.page_size or self.profile.page_size
        rows = await self.paginator.fetch_all(
            lambda offset, size: self._fetch_page(effective, offset, size),
            page_size,
            effective.start_offset,
        )

        records = [self.profile.normalize_row(row, effective) for row in rows]
        records = self.deduplicator.deduplicate(records, effective.dimensions)

        quality = self.auditor.audit(records, effective) if options.validate_data else None

        if options.aggregate is not None:
            records = self.aggregator.aggregate(records, options.aggregate)

        if caching:
            self.cache.set(cache_key, records)

        if options.incremental:
            self.sync_cursor.record(sync_key)

        logger.info(
            f"Fetched {len(records)} {self.profile.name} records "
            f"({effective.start_date} to {effective.end_date})"
        )
        return FetchResult(records=records, quality=quality)

    async def fetch_metrics(
        self,
        request: FetchRequest,
        options: Optional[FetchOptions] = None,
    ) -> List[MetricRecord]:
        """Fetch canonical records; see ``fetch_metrics_with_report``."""
        result = await self.fetch_metrics_with_report(request, options)
        return result.records

    async def iter_metric_pages(self, request: FetchRequest) -> AsyncIterator[List[MetricRecord]]:
        """
        Stream normalized, deduplicated records one provider page at a time.

        Bypasses the cache. Breaking out of the loop stops further page
        requests.
        """
        page_size = request.page_size or self.profile.page_size
        seen_keys: Set[str] = set()
        async for rows in self.paginator.iter_pages(
            lambda offset, size: self._fetch_page(request, offset, size),
            page_size,
            request.start_offset,
        ):
            records = [self.profile.normalize_row(row, request) for row in rows]
            yield self.deduplicator.deduplicate(records, request.dimensions, seen_keys)

    async def get_page_metrics(
        self,
        page: str,
        start_date: date,
        end_date: date,
        options: Optional[FetchOptions] = None,
    ) -> List[MetricRecord]:
        """
        Daily metrics for one page.

        Args:
            page: Page URL (search console) or path (analytics), matched by
                substring
            start_date: Range start (inclusive)
            end_date: Range end (inclusive)
            options: Fetch options

        Raises:
            ValueError: Blank page or invalid date range
        """
        if not page or not page.strip():
            raise ValueError("page must be a non-empty string")

        request = self.profile.page_metrics_request(page, start_date, end_date)
        return await self.fetch_metrics(request, options)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def get_state(self) -> Dict[str, Any]:
        """Snapshot of governor and cache state for monitoring."""
        return {
            "provider": self.profile.name,
            "account_id": self.config.account_id,
            "governor": self.governor.get_state(),
            "cache_entries": len(self.cache),
            "cache_hit_rate": self.cache.metrics.hit_rate,
            "tracked_syncs": len(self.sync_cursor),
            "seen_records": self.deduplicator.seen_count,
        }

    async def close(self) -> None:
        """Stop the cache sweeper, release the HTTP client and drop state."""
        await self.cache.stop_sweeper()

        if self._http is not None and self._owns_http:
            await self._http.aclose()
        self._http = None

        self.cache.clear()
        self.sync_cursor.clear()
        self.deduplicator.reset()
        logger.info(f"{type(self).__name__} closed: provider={self.profile.name}")

    async def __aenter__(self) -> "MetricsClient":
        self._ensure_sweeper()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_analytics_client(
    access_token: str,
    property_id: str,
    http_client: Optional[httpx.AsyncClient] = None,
    **overrides: Any,
) -> MetricsClient:
    """
    Build an analytics client.

    Args:
        access_token: OAuth bearer token
        property_id: Property id, with or without the ``properties/`` prefix
        http_client: Optional shared HTTP client
        **overrides: Any other ``ClientConfig`` field

    Raises:
        pydantic.ValidationError: Invalid configuration
    """
    config = ClientConfig(access_token=access_token, account_id=property_id, **overrides)
    return MetricsClient(ANALYTICS, config, http_client=http_client)
