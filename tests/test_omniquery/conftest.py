"""Unit tests for the omniquery routing pipeline.

All external dependencies (LLM, Weaviate, market-data APIs, RSS, weather)
are mocked so the suite runs fast, offline and deterministically.

Run all tests::

    uv run --env-file .env pytest -sv tests/test_omniquery/

Organisation
------------
- ``test_schemas.py``      – data-model invariants and lenient parsing
- ``test_rate_limits.py``  – usage windows and the 5-minute cooldown (fake clock)
- ``test_providers.py``    – Finnhub / Alpha Vantage / Google / Yahoo adapters
- ``test_chain.py``        – priority failover, rate-limit classification, agentic path
- ``test_selector.py``     – LLM provider pick and deterministic fallbacks
- ``test_registry.py``     – closed capability tables per domain
- ``test_tools.py``        – news / weather / document / finance capabilities
- ``test_router.py``       – intent classification and fail-open
- ``test_specialist.py``   – specialist execution and tool scoping
- ``test_aggregator.py``   – synthesis shortcuts and fallback
- ``test_orchestrator.py`` – end-to-end scenarios, timeouts, cancellation
- ``test_tracing.py``      – Langfuse wrapper and logging bootstrap
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from src.omniquery.models.schemas import StockQuote
from src.omniquery.tools.providers.base import QuoteProvider
from src.omniquery.tools.providers.rate_limits import RateLimitTracker


class FakeClock:
    """Manually advanced ``time.time`` replacement."""

    def __init__(self, start: float = 6000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(QuoteProvider):
    """Scripted provider: returns ``price`` or an error text, or raises ``exc``."""

    def __init__(
        self,
        name: str,
        priority: int,
        *,
        price: float = 0.0,
        error: str = "",
        exc: Exception | None = None,
        enabled: bool = True,
        available: bool = True,
    ):
        super().__init__(priority=priority, enabled=enabled)
        self.name = name
        self.price = price
        self.error_text = error
        self.exc = exc
        self.available = available
        self.calls = 0

    def is_available(self) -> bool:
        return self.available

    def fetch_quote(self, symbol: str) -> StockQuote:
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        if self.error_text:
            return self.error(symbol, self.error_text)
        return StockQuote(symbol=symbol, price=self.price, company_name=f"{symbol} Inc.", provider_name=self.name)


@pytest.fixture(autouse=True)
def no_langfuse():
    """Keep tracing off even when a local .env carries Langfuse keys."""
    with patch("src.omniquery.services.tracing._langfuse", return_value=None):
        yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(clock) -> RateLimitTracker:
    return RateLimitTracker(clock=clock)


@pytest.fixture
def make_provider():
    return FakeProvider
