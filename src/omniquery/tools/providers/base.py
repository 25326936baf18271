"""Quote provider contract shared by every upstream market-data source."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config.settings import HTTP_TIMEOUT
from ...models.schemas import StockQuote

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = (
    "rate limit",
    "too many requests",
    "429",
    "quota exceeded",
    "limit reached",
)

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def is_rate_limit_message(text: str | None) -> bool:
    """True when an error text looks like an upstream rate-limit response."""
    if not text:
        return False
    lowered = text.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)


def http_get(url: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> httpx.Response:
    """GET with the shared timeout and a browser-like user agent.

    Raises ``httpx.HTTPStatusError`` for 4xx/5xx so providers can classify
    the status text (``429 Too Many Requests`` is a rate limit).
    """
    resp = httpx.get(
        url,
        params=params,
        timeout=timeout or HTTP_TIMEOUT,
        headers={"User-Agent": _USER_AGENT},
        follow_redirects=True,
    )
    resp.raise_for_status()
    return resp


class QuoteProvider:
    """Base class for one stock-quote source.

    Subclasses set ``name`` and implement ``fetch_quote``.  ``priority``
    (lower is tried first) and ``enabled`` come from configuration.
    ``get_quote`` may return an error quote or raise; the chain treats
    both the same way.
    """

    name = "Provider"

    def __init__(self, *, priority: int, enabled: bool = True):
        self.priority = priority
        self.enabled = enabled

    def is_available(self) -> bool:
        return True

    def fetch_quote(self, symbol: str) -> StockQuote:
        raise NotImplementedError

    def get_quote(self, symbol: str) -> StockQuote:
        return self.fetch_quote(symbol.strip().upper())

    def error(self, symbol: str, message: str) -> StockQuote:
        return StockQuote.error(symbol, message, provider_name=self.name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} priority={self.priority} enabled={self.enabled}>"
