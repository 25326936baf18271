"""Google Finance scraper – free, keyless, unofficial (may break without notice).

The quote page embeds the last price as ``data-last-price="…"``; older
layouts only render it inside the ``YMlKec`` price div.  NASDAQ is tried
first, then NYSE.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup

from ...models.schemas import StockQuote, parse_float
from .base import QuoteProvider, http_get

logger = logging.getLogger(__name__)

_QUOTE_URL = "https://www.google.com/finance/quote/{symbol}:{exchange}"
_EXCHANGES = ("NASDAQ", "NYSE")


def _money(text: str | None) -> float:
    return parse_float((text or "").replace("$", "").strip())


def _label_value(soup: BeautifulSoup, label: str) -> str:
    """Text of the element following the one whose text is ``label``."""
    node = soup.find(string=lambda s: s is not None and s.strip() == label)
    if node is None:
        return ""
    # Newer layouts wrap the label in a span; climb until a value sibling exists.
    element = node.parent
    for _ in range(3):
        value = element.find_next_sibling()
        if value is not None:
            return value.get_text(" ", strip=True)
        element = element.parent
        if element is None:
            break
    return ""


def parse_quote_page(symbol: str, page: str, provider_name: str = "Google Finance") -> StockQuote:
    """Extract a quote from one Google Finance HTML page."""
    soup = BeautifulSoup(page, "html.parser")

    price_node = soup.select_one("[data-last-price]")
    price = _money(price_node["data-last-price"]) if price_node is not None else 0.0
    if price <= 0:
        price_div = soup.select_one("div.YMlKec")
        price = _money(price_div.get_text(strip=True)) if price_div is not None else 0.0
    if price <= 0:
        return StockQuote.error(symbol, "Could not parse price from Google Finance", provider_name)

    low_text, _, high_text = _label_value(soup, "Day range").partition("-")
    low, high = _money(low_text), _money(high_text)

    previous_close = _money(_label_value(soup, "Previous close"))
    change = change_pct = 0.0
    if price_node is not None:
        change = parse_float(price_node.get("data-last-change"))
        change_pct = parse_float(price_node.get("data-last-change-percent"))
    if previous_close and not change:
        change = price - previous_close
        change_pct = change / previous_close * 100

    name_div = soup.select_one("div.zzDege")
    company_name = name_div.get_text(strip=True) if name_div is not None else ""
    return StockQuote(
        symbol=symbol,
        price=price,
        change=round(change, 4),
        change_percent=round(change_pct, 4),
        day_high=high,
        day_low=low,
        previous_close=previous_close,
        last_trade_time="Real-time",
        company_name=company_name or symbol,
        provider_name=provider_name,
    )


class GoogleFinanceProvider(QuoteProvider):
    name = "Google Finance"

    def fetch_quote(self, symbol: str) -> StockQuote:
        quote = self.error(symbol, "No data returned")
        for exchange in _EXCHANGES:
            resp = http_get(_QUOTE_URL.format(symbol=symbol, exchange=exchange))
            quote = parse_quote_page(symbol, resp.text, self.name)
            if not quote.is_error:
                return quote
            logger.debug("Google Finance: no price for %s on %s", symbol, exchange)
        return quote
