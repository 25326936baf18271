"""Alpha Vantage GLOBAL_QUOTE provider (free tier: 25 calls/day)."""

from __future__ import annotations

import logging

import httpx

from ...models.schemas import StockQuote, parse_float, parse_int
from .base import QuoteProvider, http_get

logger = logging.getLogger(__name__)

_URL = "https://www.alphavantage.co/query"


class AlphaVantageProvider(QuoteProvider):
    name = "Alpha Vantage"

    def __init__(self, api_key: str, *, priority: int = 99, enabled: bool = True):
        super().__init__(priority=priority, enabled=enabled)
        self.api_key = api_key

    def is_available(self) -> bool:
        return bool(self.api_key)

    def fetch_quote(self, symbol: str) -> StockQuote:
        try:
            resp = http_get(_URL, {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.api_key})
        except httpx.HTTPStatusError as exc:
            return self.error(symbol, f"HTTP {exc.response.status_code} from Alpha Vantage")

        data = resp.json() or {}
        # Throttled responses come back as 200 with a Note/Information body.
        for key in ("Note", "Information"):
            if key in data:
                return self.error(symbol, f"Rate limit reached: {data[key]}")
        if "Error Message" in data:
            return self.error(symbol, str(data["Error Message"]))

        gq = data.get("Global Quote") or {}
        if not gq:
            return self.error(symbol, f"No quote data for {symbol}")

        return StockQuote(
            symbol=str(gq.get("01. symbol") or symbol),
            open=parse_float(gq.get("02. open")),
            day_high=parse_float(gq.get("03. high")),
            day_low=parse_float(gq.get("04. low")),
            price=parse_float(gq.get("05. price")),
            volume=parse_int(gq.get("06. volume")),
            last_trade_time=str(gq.get("07. latest trading day") or ""),
            previous_close=parse_float(gq.get("08. previous close")),
            change=parse_float(gq.get("09. change")),
            change_percent=parse_float(gq.get("10. change percent")),
            company_name=symbol,
            provider_name=self.name,
        )
