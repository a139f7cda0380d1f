"""
Pytest configuration and fixtures.

Provides shared fixtures for all tests including:
- Fake monotonic clock with an instant, recording sleep
- Client builders wired to ``httpx.MockTransport``
- Sample canonical records
"""

import asyncio
import json
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from metrics_ingest.core.config import ClientConfig
from metrics_ingest.services.providers.client import MetricsClient
from metrics_ingest.services.providers.profiles import ANALYTICS
from metrics_ingest.services.providers.search_console import SearchConsoleClient


TODAY = date(2026, 1, 12)
SYNC_NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
SITE_URL = "https://example.com/"
PROPERTY_ID = "properties/123456789"


class FakeClock:
    """Monotonic clock whose ``sleep`` returns at once and advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class RecordingHandler:
    """MockTransport handler replaying queued responses and recording requests."""

    def __init__(self, responses: Optional[List[Any]] = None, default: Optional[Callable] = None):
        self.responses = list(responses or [])
        self.default = default
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
        elif self.default is not None:
            response = self.default(request)
        else:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")

        if isinstance(response, Exception):
            raise response
        return response

    @property
    def calls(self) -> int:
        return len(self.requests)

    def body(self, index: int) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)

    def raw_path(self, index: int) -> str:
        return self.requests[index].url.raw_path.decode()


def json_response(status_code: int = 200, payload: Any = None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(status_code, json=payload if payload is not None else {}, headers=headers)


def error_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"error": {"code": status_code, "message": message}},
        headers=headers,
    )


def search_console_row(day: str, query: str = "python", page: str = "/blog", clicks: int = 10,
                       impressions: int = 100, ctr: float = 0.1, position: float = 3.0) -> Dict[str, Any]:
    return {
        "keys": [day, query, page],
        "clicks": clicks,
        "impressions": impressions,
        "ctr": ctr,
        "position": position,
    }


@pytest.fixture
def clock():
    """Fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def build_search_console(clock):
    """Factory for a search console client over a MockTransport handler."""

    def _build(handler: RecordingHandler, **overrides) -> SearchConsoleClient:
        overrides.setdefault("inter_request_delay", 0)
        config = ClientConfig(access_token="test-token", account_id=SITE_URL, **overrides)
        return SearchConsoleClient(
            config,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=clock.sleep,
            clock=clock,
            today=lambda: TODAY,
            now=lambda: SYNC_NOW,
        )

    return _build


@pytest.fixture
def build_analytics(clock):
    """Factory for an analytics client over a MockTransport handler."""

    def _build(handler: RecordingHandler, **overrides) -> MetricsClient:
        overrides.setdefault("inter_request_delay", 0)
        config = ClientConfig(access_token="test-token", account_id=PROPERTY_ID, **overrides)
        return MetricsClient(
            ANALYTICS,
            config,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=clock.sleep,
            clock=clock,
            today=lambda: TODAY,
            now=lambda: SYNC_NOW,
        )

    return _build


@pytest.fixture
def search_console_records():
    """Two canonical search console records."""
    return [
        {"date": "2026-01-01", "query": "python", "page": "/a", "clicks": 5, "impressions": 50, "ctr": 0.1, "position": 2.0},
        {"date": "2026-01-02", "query": "python", "page": "/a", "clicks": 10, "impressions": 100, "ctr": 0.1, "position": 4.0},
    ]
