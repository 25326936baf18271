"""Yahoo Finance provider backed by ``yfinance`` (keyless, unofficial)."""

from __future__ import annotations

import logging

from ...models.schemas import StockQuote, parse_float, parse_int
from .base import QuoteProvider

logger = logging.getLogger(__name__)


def _safe_import_yfinance():
    """Import yfinance lazily so a broken install only disables this provider."""
    try:
        import yfinance as yf
        return yf
    except ImportError:
        logger.error("yfinance is not installed – Yahoo Finance provider unavailable")
        raise


def _fast(fast_info, attr: str) -> float:
    try:
        return parse_float(getattr(fast_info, attr))
    except Exception:
        # fast_info computes lazily and raises KeyError/TypeError on sparse data
        return 0.0


class YahooFinanceProvider(QuoteProvider):
    name = "Yahoo Finance"

    def fetch_quote(self, symbol: str) -> StockQuote:
        yf = _safe_import_yfinance()
        ticker = yf.Ticker(symbol)
        fi = ticker.fast_info

        price = _fast(fi, "last_price")
        if price <= 0:
            return self.error(symbol, f"No price data for {symbol} from Yahoo Finance")

        prev = _fast(fi, "previous_close")
        change = price - prev if prev else 0.0
        try:
            company = ticker.info.get("shortName") or symbol
        except Exception as exc:
            logger.debug("yfinance info lookup failed for %s: %s", symbol, exc)
            company = symbol

        return StockQuote(
            symbol=symbol,
            price=price,
            change=round(change, 4),
            change_percent=round(change / prev * 100, 4) if prev else 0.0,
            day_high=_fast(fi, "day_high"),
            day_low=_fast(fi, "day_low"),
            open=_fast(fi, "open"),
            previous_close=prev,
            volume=parse_int(_fast(fi, "last_volume")),
            last_trade_time="Delayed",
            company_name=str(company),
            currency=str(getattr(fi, "currency", None) or "USD"),
            provider_name=self.name,
        )
