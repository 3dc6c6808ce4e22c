"""
Shared fixtures.

The fake HTTP session stands in for aiohttp.ClientSession in
gateway tests: it records every request and answers from a
route table keyed by URL path suffix.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import pytest

from core.clock import MockClock
from dca.config import DCAConfig
from exchange.config import ExchangeConfig
from exchange.mock import MockConfig, MockExchangeAdapter


# ============================================================
# FAKE HTTP
# ============================================================

class FakeResponse:
    """One canned HTTP response."""

    def __init__(
        self,
        payload: Any = None,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        error: Optional[BaseException] = None,
        body: Optional[str] = None,
    ):
        self.payload = payload
        self.body = body
        self.status = status
        self.headers = headers or {}
        self.error = error

    async def __aenter__(self) -> "FakeResponse":
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if self.body is not None:
            return json.loads(self.body)
        return self.payload

    async def text(self) -> str:
        return self.body if self.body is not None else json.dumps(self.payload)


class FakeSession:
    """Records requests and replies from a path-suffix route table."""

    def __init__(self, routes: Optional[Dict[str, FakeResponse]] = None):
        self.routes: Dict[str, FakeResponse] = dict(routes or {})
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    def add(self, path: str, response: FakeResponse) -> None:
        self.routes[path] = response

    def request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None):
        self.requests.append({"method": method, "url": url, "headers": dict(headers or {})})
        path = urlsplit(url).path
        for suffix, response in self.routes.items():
            if path.endswith(suffix):
                return response
        return FakeResponse({"code": -1121, "msg": "Invalid symbol."}, status=400)

    async def close(self) -> None:
        self.closed = True

    @property
    def last(self) -> Dict[str, Any]:
        return self.requests[-1]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def fixed_time() -> datetime:
    """Friday 2024-05-17 13:30 UTC (21:30 Asia/Shanghai)."""
    return datetime(2024, 5, 17, 13, 30, tzinfo=timezone.utc)


@pytest.fixture
def mock_clock(fixed_time) -> MockClock:
    return MockClock(fixed_time)


@pytest.fixture
def exchange_config() -> ExchangeConfig:
    return ExchangeConfig(
        rest_url="https://api.test/api/v3",
        api_key="test-api-key",
        api_secret="test-api-secret",
    )


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def response_factory():
    """Build FakeResponse objects without importing this module."""
    return FakeResponse


@pytest.fixture
def dca_config(exchange_config) -> DCAConfig:
    return DCAConfig(
        exchange=exchange_config,
        symbols=["AAAUSDT", "BBBUSDT"],
        base_usdt=Decimal("100"),
        min_order_value=Decimal("5.1"),
        rsi_period=14,
        max_concurrency=2,
        log_file=None,
    )


@pytest.fixture
def mock_gateway() -> MockExchangeAdapter:
    return MockExchangeAdapter(MockConfig())


@pytest.fixture
def closes_for_rsi():
    """
    15 closes whose 14-period RSI is exactly the requested value.

    Alternates an up move and a down move seven times each, sized
    so gains / (gains + losses) equals rsi / 100.
    """
    def build(rsi: int, start: Decimal = Decimal("100")) -> List[Decimal]:
        up = Decimal(rsi) / Decimal(50)
        down = Decimal(2) - up
        closes = [start]
        for i in range(14):
            closes.append(closes[-1] + (up if i % 2 == 0 else -down))
        return closes

    return build
