"""Resilient quote chain – priority-ordered failover across quote providers.

``ResilientQuoteChain.get_quote`` never raises.  It returns either the first
valid quote or one collective-failure ``StockQuote`` naming every provider
that was attempted.  Provider attempts are strictly sequential.

Selection strategies:
  - **sequential** (default) – walk providers by ascending priority, skip
    disabled/unavailable ones, stop at the first valid quote.
  - **agentic** – ask ``AgenticProviderSelector`` for one provider first;
    if that attempt fails and ``fallback_on_failure`` is set, continue with
    the sequential walk over the remaining providers.

Every outcome is recorded in the ``RateLimitTracker``; error texts and
exception messages matching ``is_rate_limit_message`` count as rate-limit
events rather than generic failures.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import settings
from ...models.schemas import StockQuote
from .alpha_vantage import AlphaVantageProvider
from .base import QuoteProvider, is_rate_limit_message
from .finnhub import FinnhubProvider
from .google_finance import GoogleFinanceProvider
from .rate_limits import RateLimitTracker, default_tracker
from .selector import AgenticProviderSelector
from .yahoo import YahooFinanceProvider

logger = logging.getLogger(__name__)

COLLECTIVE_FAILURE_PROVIDER = "ResilientQuoteChain"


class ResilientQuoteChain:
    """Try quote providers in priority order until one returns a valid quote."""

    def __init__(
        self,
        providers: Sequence[QuoteProvider],
        tracker: RateLimitTracker | None = None,
        *,
        selector: AgenticProviderSelector | None = None,
        agentic_selection: bool = False,
        fallback_on_failure: bool = True,
    ):
        # sorted() is stable, so equal priorities keep registration order
        self.providers: list[QuoteProvider] = sorted(providers, key=lambda p: p.priority)
        self.tracker = tracker or default_tracker
        self.selector = selector
        self.agentic_selection = agentic_selection and selector is not None
        self.fallback_on_failure = fallback_on_failure
        logger.info(
            "Quote chain order: %s (agentic selection %s)",
            [p.name for p in self.providers],
            "on" if self.agentic_selection else "off",
        )

    def usable_providers(self) -> list[QuoteProvider]:
        return [p for p in self.providers if _usable(p)]

    # ── public API ──────────────────────────────────────────────────────

    def get_quote(self, symbol: str, context: str | None = None) -> StockQuote:
        symbol = (symbol or "").strip().upper()
        attempted: list[str] = []
        last_error = ""
        picked: QuoteProvider | None = None

        if self.agentic_selection:
            picked = self._select(symbol, context)
            if picked is not None:
                quote = self._attempt(picked, symbol)
                attempted.append(picked.name)
                if quote.is_valid:
                    return quote
                last_error = quote.error_message
                if not self.fallback_on_failure:
                    return self._collective_failure(symbol, attempted, last_error)
                logger.warning("Selected provider %s failed for %s – falling back to priority order", picked.name, symbol)

        for provider in self.providers:
            if provider is picked:
                continue
            if not _usable(provider):
                logger.debug("Skipping disabled/unavailable provider %s", provider.name)
                continue
            quote = self._attempt(provider, symbol)
            attempted.append(provider.name)
            if quote.is_valid:
                return quote
            last_error = quote.error_message

        return self._collective_failure(symbol, attempted, last_error)

    # ── internals ───────────────────────────────────────────────────────

    def _select(self, symbol: str, context: str | None) -> QuoteProvider | None:
        candidates = self.usable_providers()
        if not candidates:
            return None
        try:
            return self.selector.select_provider(candidates, symbol, context)
        except Exception as exc:
            logger.error("Provider selector error: %s", exc)
            return None

    def _attempt(self, provider: QuoteProvider, symbol: str) -> StockQuote:
        """Call one provider and record the outcome; never raises."""
        name = provider.name
        try:
            quote = provider.get_quote(symbol)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning("%s raised for %s: %s", name, symbol, message)
            self._record_failure(name, message)
            return StockQuote.error(symbol, message, name)

        if quote is None:
            self._record_failure(name, "Empty response")
            return StockQuote.error(symbol, "Empty response", name)

        if quote.is_valid:
            logger.info("%s returned %s @ %.2f", name, symbol, quote.price)
            self.tracker.record_success(name)
            return quote

        message = quote.error_message if quote.is_error else "Invalid quote (non-positive price)"
        logger.warning("%s failed for %s: %s", name, symbol, message)
        self._record_failure(name, message)
        if quote.is_error:
            return quote
        return StockQuote.error(symbol, message, name)

    def _record_failure(self, provider_name: str, message: str) -> None:
        if is_rate_limit_message(message):
            self.tracker.record_rate_limit(provider_name, message)
        else:
            self.tracker.record_failure(provider_name, message)

    @staticmethod
    def _collective_failure(symbol: str, attempted: list[str], last_error: str) -> StockQuote:
        tried = ", ".join(attempted) if attempted else "none available"
        message = f"All providers failed for {symbol} (tried: {tried})"
        if last_error:
            message += f"; last error: {last_error}"
        logger.error("%s", message)
        return StockQuote.error(symbol, message, COLLECTIVE_FAILURE_PROVIDER)


def _usable(provider: QuoteProvider) -> bool:
    if not provider.enabled:
        return False
    try:
        return bool(provider.is_available())
    except Exception as exc:
        logger.warning("%s availability check failed: %s", provider.name, exc)
        return False


def build_default_chain(tracker: RateLimitTracker | None = None) -> ResilientQuoteChain:
    """Chain wired from ``config.settings``."""
    tracker = tracker or default_tracker
    providers: list[QuoteProvider] = [
        GoogleFinanceProvider(priority=settings.GOOGLE_FINANCE_PRIORITY, enabled=settings.GOOGLE_FINANCE_ENABLED),
        FinnhubProvider(
            settings.FINNHUB_API_KEY,
            priority=settings.FINNHUB_PRIORITY,
            enabled=settings.FINNHUB_ENABLED,
        ),
        AlphaVantageProvider(
            settings.ALPHA_VANTAGE_API_KEY,
            priority=settings.ALPHA_VANTAGE_PRIORITY,
            enabled=settings.ALPHA_VANTAGE_ENABLED,
        ),
        YahooFinanceProvider(priority=settings.YAHOO_FINANCE_PRIORITY, enabled=settings.YAHOO_FINANCE_ENABLED),
    ]
    selector = AgenticProviderSelector(tracker) if settings.AGENTIC_SELECTION_ENABLED else None
    return ResilientQuoteChain(
        providers,
        tracker,
        selector=selector,
        agentic_selection=settings.AGENTIC_SELECTION_ENABLED,
        fallback_on_failure=settings.AGENTIC_SELECTION_FALLBACK_ON_FAILURE,
    )
