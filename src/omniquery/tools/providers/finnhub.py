"""Finnhub REST provider (free tier: 60 calls/minute, API key required)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx

from ...models.schemas import StockQuote, parse_float
from .base import QuoteProvider, http_get

logger = logging.getLogger(__name__)

_BASE_URL = "https://finnhub.io/api/v1"


class FinnhubProvider(QuoteProvider):
    name = "Finnhub"

    def __init__(self, api_key: str, *, priority: int = 10, enabled: bool = True):
        super().__init__(priority=priority, enabled=enabled)
        self.api_key = api_key

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _company_name(self, symbol: str) -> str:
        try:
            resp = http_get(f"{_BASE_URL}/stock/profile2", {"symbol": symbol, "token": self.api_key})
            return str(resp.json().get("name") or symbol)
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Finnhub profile lookup failed for %s: %s", symbol, exc)
            return symbol

    def fetch_quote(self, symbol: str) -> StockQuote:
        try:
            resp = http_get(f"{_BASE_URL}/quote", {"symbol": symbol, "token": self.api_key})
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                return self.error(symbol, "429 Too Many Requests: Finnhub rate limit exceeded")
            return self.error(symbol, f"HTTP {status} from Finnhub")

        data = resp.json() or {}
        if data.get("error"):
            return self.error(symbol, str(data["error"]))

        price = parse_float(data.get("c"))
        if price <= 0:
            return self.error(symbol, f"No quote data for {symbol} (unknown symbol or market closed)")

        ts = data.get("t")
        last_trade = (
            datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat(timespec="seconds")
            if ts else "Real-time"
        )
        return StockQuote(
            symbol=symbol,
            price=price,
            change=parse_float(data.get("d")),
            change_percent=parse_float(data.get("dp")),
            day_high=parse_float(data.get("h")),
            day_low=parse_float(data.get("l")),
            open=parse_float(data.get("o")),
            previous_close=parse_float(data.get("pc")),
            last_trade_time=last_trade,
            company_name=self._company_name(symbol),
            provider_name=self.name,
        )
