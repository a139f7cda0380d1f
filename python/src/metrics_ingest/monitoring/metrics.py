"""
Prometheus metrics for the provider read path.

Provides counters and histograms for:
- Outbound requests by provider and outcome
- Rate limit hits and quota waits
- Retry attempts
- Cache hits/misses
- Deduplicated rows and quality anomalies
"""

from prometheus_client import Counter, Gauge, Histogram


# ============================================================================
# Request Metrics
# ============================================================================

provider_requests_total = Counter(
    'metrics_ingest_provider_requests_total',
    'Total outbound provider requests',
    ['provider', 'outcome']  # success, error
)

provider_retries_total = Counter(
    'metrics_ingest_provider_retries_total',
    'Total retry attempts after a retryable failure',
    ['provider', 'error_kind']
)

provider_pages_fetched_total = Counter(
    'metrics_ingest_provider_pages_fetched_total',
    'Total report pages fetched',
    ['provider']
)


# ============================================================================
# Rate Governor Metrics
# ============================================================================

rate_limit_hits_total = Counter(
    'metrics_ingest_rate_limit_hits_total',
    'Total number of 429 rate limit responses',
    ['provider']
)

quota_wait_seconds = Histogram(
    'metrics_ingest_quota_wait_seconds',
    'Time spent waiting for a quota window to reset',
    ['provider'],
    buckets=(0.1, 0.5, 1, 5, 10, 30, 60, 120, 300)
)

rate_governor_queue_depth = Gauge(
    'metrics_ingest_rate_governor_queue_depth',
    'Number of tasks waiting in the rate governor queue',
    ['provider']
)


# ============================================================================
# Cache / Data Metrics
# ============================================================================

cache_requests_total = Counter(
    'metrics_ingest_cache_requests_total',
    'Result cache lookups',
    ['provider', 'result']  # hit, miss
)

dedup_dropped_rows_total = Counter(
    'metrics_ingest_dedup_dropped_rows_total',
    'Rows dropped as duplicates',
    ['provider']
)

quality_anomalies_total = Counter(
    'metrics_ingest_quality_anomalies_total',
    'Data quality anomalies detected',
    ['provider']
)
