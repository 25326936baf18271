"""Financial capabilities for the financial specialist.

Quotes go through the ``ResilientQuoteChain`` (multi-provider failover);
history, ratios, movers and macro indicators come straight from yfinance.
A collective quote failure raises ``AllProvidersFailedError`` so the
specialist reports the financial domain as failed instead of letting the
model improvise a price.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from ..models.errors import AllProvidersFailedError
from ..models.schemas import Domain, normalize_symbol, parse_float
from .providers.chain import ResilientQuoteChain, build_default_chain
from .providers.yahoo import _safe_import_yfinance
from .registry import Capability, ToolTable, build_tool_table

logger = logging.getLogger(__name__)

_VALID_PERIODS = ("5d", "1mo", "3mo", "6mo", "1y", "2y", "5y", "10y", "ytd", "max")

# Large caps used as the market-movers universe.
MOVERS_WATCHLIST = (
    "AAPL", "MSFT", "NVDA", "AMZN", "GOOGL", "META", "TSLA", "AVGO",
    "JPM", "V", "UNH", "XOM", "JNJ", "WMT", "MA", "PG", "HD", "NFLX", "AMD", "CRM",
)

# Market proxies for macro conditions.
ECONOMIC_PROXIES = {
    "^GSPC": "S&P 500 index",
    "^VIX": "CBOE volatility index (VIX)",
    "^TNX": "10-year Treasury yield (%)",
    "DX-Y.NYB": "US dollar index",
    "CL=F": "WTI crude oil ($/bbl)",
    "GC=F": "Gold ($/oz)",
}

_chain: ResilientQuoteChain | None = None
_chain_lock = threading.Lock()


def get_chain() -> ResilientQuoteChain:
    """Process-wide quote chain, built from settings on first use."""
    global _chain
    with _chain_lock:
        if _chain is None:
            _chain = build_default_chain()
        return _chain


def _last_and_change(fast_info) -> tuple[float, float]:
    last = parse_float(getattr(fast_info, "last_price", 0))
    prev = parse_float(getattr(fast_info, "previous_close", 0))
    pct = (last - prev) / prev * 100 if prev else 0.0
    return last, pct


# ── Capabilities ─────────────────────────────────────────────────────────

def make_stock_quote(chain: ResilientQuoteChain | None = None) -> Callable[..., str]:
    def get_stock_quote(symbol: str, context: str = "") -> str:
        """Real-time stock quote (price, change, day range, volume) for a ticker.

        Args:
            symbol: Ticker symbol, e.g. "AAPL".
            context: Optional note on why the quote is needed, e.g. "real-time needed".
        """
        try:
            sym = normalize_symbol(symbol)
        except ValueError as exc:
            # Only provider exhaustion aborts the run; bad input goes back to the model.
            return f"{exc}. Pass a ticker such as \"AAPL\", not a company name."
        quote = (chain or get_chain()).get_quote(sym, context or None)
        if quote.is_error:
            raise AllProvidersFailedError(sym, quote.error_message)
        return quote.format()

    return get_stock_quote


def get_historical_prices(symbol: str, period: str = "1mo") -> str:
    """Daily closing prices and the period's performance for a ticker.

    Args:
        symbol: Ticker symbol, e.g. "MSFT".
        period: One of 5d, 1mo, 3mo, 6mo, 1y, 2y, 5y, 10y, ytd, max.
    """
    sym = normalize_symbol(symbol)
    if period not in _VALID_PERIODS:
        raise ValueError(f"Unsupported period {period!r}; use one of {', '.join(_VALID_PERIODS)}")
    yf = _safe_import_yfinance()
    hist = yf.Ticker(sym).history(period=period)
    if hist is None or hist.empty:
        return f"No historical data for {sym} over {period}."

    closes = hist["Close"]
    first, last = float(closes.iloc[0]), float(closes.iloc[-1])
    change = (last - first) / first * 100 if first else 0.0
    lines = [
        f"{sym} over {period}: {first:.2f} → {last:.2f} ({change:+.2f}%)",
        f"High {float(hist['High'].max()):.2f}, low {float(hist['Low'].min()):.2f}, "
        f"{len(hist)} trading days",
    ]
    # Keep the tail short; the model only needs the shape of the series.
    for idx, row in hist.tail(10).iterrows():
        lines.append(f"  {idx.date().isoformat()}: close {float(row['Close']):.2f}, volume {int(row['Volume']):,}")
    return "\n".join(lines)


_RATIO_FIELDS = (
    ("trailingPE", "P/E (trailing)"),
    ("forwardPE", "P/E (forward)"),
    ("priceToBook", "Price/Book"),
    ("debtToEquity", "Debt/Equity"),
    ("returnOnEquity", "Return on equity"),
    ("profitMargins", "Profit margin"),
    ("operatingMargins", "Operating margin"),
    ("currentRatio", "Current ratio"),
    ("dividendYield", "Dividend yield"),
    ("marketCap", "Market cap"),
)


def analyze_financial_ratios(symbol: str) -> str:
    """Valuation and profitability ratios for a company.

    Args:
        symbol: Ticker symbol, e.g. "NVDA".
    """
    sym = normalize_symbol(symbol)
    yf = _safe_import_yfinance()
    info: dict[str, Any] = yf.Ticker(sym).info or {}
    rows = []
    for key, label in _RATIO_FIELDS:
        value = info.get(key)
        if value is None:
            continue
        if key == "marketCap":
            rows.append(f"- {label}: {float(value) / 1e9:,.1f}B")
        elif key in ("returnOnEquity", "profitMargins", "operatingMargins"):
            rows.append(f"- {label}: {float(value) * 100:.1f}%")
        else:
            rows.append(f"- {label}: {float(value):.2f}")
    if not rows:
        return f"No ratio data available for {sym}."
    name = info.get("shortName") or sym
    return "\n".join([f"Financial ratios for {name} ({sym}):", *rows])


def get_market_movers(limit: int = 5) -> str:
    """Biggest gainers and losers today among major US large caps.

    Args:
        limit: How many gainers and how many losers to list.
    """
    yf = _safe_import_yfinance()
    moves: list[tuple[str, float, float]] = []
    for sym in MOVERS_WATCHLIST:
        try:
            last, pct = _last_and_change(yf.Ticker(sym).fast_info)
        except Exception as exc:
            logger.debug("Movers: skipping %s: %s", sym, exc)
            continue
        if last > 0:
            moves.append((sym, last, pct))
    if not moves:
        return "Market movers are not available right now."

    moves.sort(key=lambda m: m[2], reverse=True)
    n = max(1, min(limit, len(moves) // 2 or 1))

    def fmt(m: tuple[str, float, float]) -> str:
        return f"- {m[0]}: {m[1]:.2f} ({m[2]:+.2f}%)"

    return "\n".join([
        "Top gainers:", *map(fmt, moves[:n]),
        "Top losers:", *map(fmt, reversed(moves[-n:])),
    ])


def get_economic_indicators() -> str:
    """Snapshot of macro indicators: S&P 500, VIX, 10Y yield, dollar, oil, gold."""
    yf = _safe_import_yfinance()
    lines = ["Economic indicators (latest):"]
    for sym, label in ECONOMIC_PROXIES.items():
        try:
            last, pct = _last_and_change(yf.Ticker(sym).fast_info)
        except Exception as exc:
            logger.debug("Indicator %s unavailable: %s", sym, exc)
            continue
        if last > 0:
            lines.append(f"- {label}: {last:,.2f} ({pct:+.2f}% today)")
    if len(lines) == 1:
        return "Economic indicators are not available right now."
    return "\n".join(lines)


def build_financial_tools(chain: ResilientQuoteChain | None = None) -> ToolTable:
    return build_tool_table(Domain.FINANCIAL, {
        Capability.GET_STOCK_QUOTE: make_stock_quote(chain),
        Capability.GET_HISTORICAL_PRICES: get_historical_prices,
        Capability.ANALYZE_FINANCIAL_RATIOS: analyze_financial_ratios,
        Capability.GET_MARKET_MOVERS: get_market_movers,
        Capability.GET_ECONOMIC_INDICATORS: get_economic_indicators,
    })
