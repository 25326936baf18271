"""LLM-assisted choice of which quote provider to try first.

The selector only ever *orders* the first attempt – the chain still owns
the deterministic priority fallback, so a bad pick costs one extra call at
most.  Rate-limit stats from the tracker are the main input: a provider
hit by a rate limit in the last five minutes is a strong negative signal.
"""

from __future__ import annotations

import logging
from typing import Sequence

from openai import OpenAI

from ...config.settings import OPENAI_API_KEY, OPENAI_BASE_URL, PLANNER_MODEL
from .base import QuoteProvider
from .rate_limits import RateLimitTracker

logger = logging.getLogger(__name__)

# Finnhub's free tier allows 60/min; leave headroom.
_FINNHUB_MINUTE_BUDGET = 55

_PROVIDER_ALIASES = (
    ("finnhub", "Finnhub"),
    ("alpha vantage", "Alpha Vantage"),
    ("alphavantage", "Alpha Vantage"),
    ("yahoo", "Yahoo Finance"),
    ("google", "Google Finance"),
)

_SELECTION_PROMPT = """\
You pick the best stock-quote API provider for one request.

AVAILABLE PROVIDERS AND CURRENT STATUS:
{providers}

Known limits:
  * Finnhub: 60 calls/minute, free – the default choice
  * Alpha Vantage: 25 calls/day – reserve for when others fail
  * Yahoo Finance: unlimited but unofficial and sometimes unreliable
  * Google Finance: unlimited, scraped, last resort

REQUEST:
- Symbol: {symbol}
- Context: {context}

Rules, in order:
1. Avoid providers that were rate-limited recently or are close to their limit.
2. Prefer Finnhub unless it has made more than 50 calls in the last minute.
3. Weigh success rates and recent failures.

Respond with ONLY the provider name, e.g. "Finnhub". No explanation.
"""


def parse_provider_selection(response: str) -> str:
    """Map free-form model output to a canonical provider name."""
    cleaned = (response or "").strip().strip("\"'").rstrip(".!,").strip()
    lowered = cleaned.lower()
    for needle, canonical in _PROVIDER_ALIASES:
        if needle in lowered:
            return canonical
    logger.warning("Could not parse provider name from LLM response: %r", response)
    return cleaned


class AgenticProviderSelector:
    """Choose one provider from the usable candidates."""

    def __init__(self, tracker: RateLimitTracker, llm: OpenAI | None = None, model: str = PLANNER_MODEL):
        self.tracker = tracker
        self.model = model
        self._llm = llm or OpenAI(base_url=OPENAI_BASE_URL, api_key=OPENAI_API_KEY)

    # ── LLM selection ───────────────────────────────────────────────────

    def _describe(self, providers: Sequence[QuoteProvider]) -> str:
        blocks = []
        for p in providers:
            stats = self.tracker.get_stats(p.name)
            blocks.append(
                f"Provider: {p.name}\n"
                f"- Priority: {p.priority} (lower is better)\n"
                f"- Calls in last minute: {stats.calls_last_minute()}\n"
                f"- Calls in last hour: {stats.calls_last_hour()}\n"
                f"- Success rate: {stats.success_rate() * 100:.1f}%\n"
                f"- Recently rate-limited: {stats.is_rate_limited_recently()}"
            )
        return "\n\n".join(blocks)

    def select_provider(
        self,
        candidates: Sequence[QuoteProvider],
        symbol: str,
        context: str | None = None,
    ) -> QuoteProvider | None:
        """Ask the model for a provider; fall back to priority on any problem."""
        if not candidates:
            return None
        prompt = _SELECTION_PROMPT.format(
            providers=self._describe(candidates),
            symbol=symbol,
            context=context or "General quote request",
        )
        try:
            resp = self._llm.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0,
                max_tokens=16,
            )
            picked = parse_provider_selection(resp.choices[0].message.content or "")
        except Exception as exc:
            logger.error("Provider selection LLM error: %s", exc)
            return self.select_by_priority(candidates)

        for p in candidates:
            if p.name.lower() == picked.lower():
                logger.info("LLM selected provider %s for %s", p.name, symbol)
                return p
        logger.warning("LLM selected unknown provider %r – using priority order", picked)
        return self.select_by_priority(candidates)

    # ── deterministic selection ─────────────────────────────────────────

    def select_by_priority(self, candidates: Sequence[QuoteProvider]) -> QuoteProvider | None:
        usable = [p for p in candidates if p.enabled and p.is_available()]
        if not usable:
            return None
        fresh = [p for p in usable if not self.tracker.is_rate_limited_recently(p.name)]
        return min(fresh or usable, key=lambda p: p.priority)

    def select_provider_simple(self, candidates: Sequence[QuoteProvider]) -> QuoteProvider | None:
        """Prefer Finnhub while it has minute budget left; otherwise priority."""
        for p in candidates:
            if p.name != "Finnhub" or not (p.enabled and p.is_available()):
                continue
            stats = self.tracker.get_stats(p.name)
            if not stats.is_rate_limited_recently() and stats.calls_last_minute() < _FINNHUB_MINUTE_BUDGET:
                return p
        return self.select_by_priority(candidates)
