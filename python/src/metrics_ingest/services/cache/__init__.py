"""
Result caching and incremental sync tracking.
"""

from .result_cache import CacheMetrics, ResultCache
from .sync_cursor import SyncCursor

__all__ = [
    "CacheMetrics",
    "ResultCache",
    "SyncCursor",
]
