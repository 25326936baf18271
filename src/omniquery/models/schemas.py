"""Shared data models for the query-routing pipeline.

All models are plain frozen dataclasses – they are created once per
question and passed by value between Router, Specialists and Aggregator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


# ── Domains ──────────────────────────────────────────────────────────────

class Domain(str, Enum):
    FINANCIAL = "financial"
    RESEARCH = "research"
    NEWS = "news"
    WEATHER = "weather"

    @property
    def agent_name(self) -> str:
        return f"{self.value.capitalize()}Agent"


# ── Routing decision ─────────────────────────────────────────────────────

_INTENT_FIELDS = {
    "needsFinancial": Domain.FINANCIAL,
    "needsResearch": Domain.RESEARCH,
    "needsNews": Domain.NEWS,
    "needsWeather": Domain.WEATHER,
}


@dataclass(frozen=True)
class QueryIntent:
    """Multi-select routing decision over the four domains."""

    needs_financial: bool = False
    needs_research: bool = False
    needs_news: bool = False
    needs_weather: bool = False
    reasoning: str = ""

    @classmethod
    def all_agents(cls, reasoning: str) -> "QueryIntent":
        return cls(True, True, True, True, reasoning)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueryIntent":
        """Build from the router's JSON object.

        Raises ``ValueError`` when any of the four flags is missing or not
        a boolean – a partial answer is a classification failure.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        flags: dict[Domain, bool] = {}
        for key, domain in _INTENT_FIELDS.items():
            value = data.get(key)
            if not isinstance(value, bool):
                raise ValueError(f"Field {key!r} missing or not a boolean: {value!r}")
            flags[domain] = value
        return cls(
            needs_financial=flags[Domain.FINANCIAL],
            needs_research=flags[Domain.RESEARCH],
            needs_news=flags[Domain.NEWS],
            needs_weather=flags[Domain.WEATHER],
            reasoning=str(data.get("reasoning", "") or ""),
        )

    def needs(self, domain: Domain) -> bool:
        return {
            Domain.FINANCIAL: self.needs_financial,
            Domain.RESEARCH: self.needs_research,
            Domain.NEWS: self.needs_news,
            Domain.WEATHER: self.needs_weather,
        }[domain]

    def domains(self) -> list[Domain]:
        """Flagged domains, always in financial → research → news → weather order."""
        return [d for d in Domain if self.needs(d)]

    def needs_any_agent(self) -> bool:
        return bool(self.domains())

    def agent_summary(self) -> str:
        names = [d.agent_name for d in self.domains()]
        return ", ".join(names) if names else "None"


# ── Specialist output ────────────────────────────────────────────────────

@dataclass(frozen=True)
class AgentResult:
    """Outcome of one specialist invocation (exactly one per invocation)."""

    agent_name: str
    result: str
    success: bool
    execution_time_ms: int = 0

    def __post_init__(self):
        if self.execution_time_ms < 0:
            object.__setattr__(self, "execution_time_ms", 0)

    @classmethod
    def ok(cls, agent_name: str, result: str, execution_time_ms: int) -> "AgentResult":
        return cls(agent_name, result, True, execution_time_ms)

    @classmethod
    def failure(cls, agent_name: str, error: str, execution_time_ms: int) -> "AgentResult":
        return cls(agent_name, error, False, execution_time_ms)


# ── Stock quotes ─────────────────────────────────────────────────────────

_BLANK_VALUES = {"", "n/a", "na", "-", "--", "none", "null"}


def _clean_number(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _BLANK_VALUES:
        return None
    text = text.replace(",", "").rstrip("%").strip()
    return text or None


def parse_float(value: Any) -> float:
    """Lenient float parsing for upstream payloads; junk maps to 0.0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = _clean_number(value)
    if text is None:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_int(value: Any) -> int:
    """Lenient int parsing; accepts ``"1,234"`` and ``"12.0"``."""
    return int(parse_float(value))


@dataclass(frozen=True)
class StockQuote:
    """A single quote from one provider, or an explicit error marker.

    Callers must branch on ``is_error`` / ``is_valid`` – an error quote has
    zeroed numbers that must never be read as a real zero price.
    """

    symbol: str
    price: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    day_high: float = 0.0
    day_low: float = 0.0
    open: float = 0.0
    previous_close: float = 0.0
    volume: int = 0
    last_trade_time: str = ""
    company_name: str = ""
    currency: str = "USD"
    provider_name: str = ""
    is_error: bool = False
    error_message: str = ""

    @classmethod
    def error(cls, symbol: str, message: str, provider_name: str = "") -> "StockQuote":
        return cls(
            symbol=symbol.upper(),
            last_trade_time="N/A",
            company_name="ERROR",
            provider_name=provider_name,
            is_error=True,
            error_message=message,
        )

    @property
    def is_valid(self) -> bool:
        return self.price > 0 and not self.is_error

    def format(self) -> str:
        """Human-readable block handed back to the financial specialist."""
        if self.is_error:
            return f"Error fetching quote for {self.symbol}: {self.error_message}"
        name = f" ({self.company_name})" if self.company_name else ""
        sign = "+" if self.change >= 0 else ""
        lines = [
            f"{self.symbol}{name}",
            f"Price: {self.price:.2f} {self.currency}",
            f"Change: {sign}{self.change:.2f} ({sign}{self.change_percent:.2f}%)",
            f"Open: {self.open:.2f}  High: {self.day_high:.2f}  Low: {self.day_low:.2f}",
            f"Previous close: {self.previous_close:.2f}",
        ]
        if self.volume:
            lines.append(f"Volume: {self.volume:,}")
        if self.last_trade_time:
            lines.append(f"Last trade: {self.last_trade_time}")
        lines.append(f"Source: {self.provider_name}")
        return "\n".join(lines)


_TICKER_RE = re.compile(r"^[A-Z^][A-Z0-9.\-=]{0,14}$")


def normalize_symbol(symbol: str) -> str:
    """Upper-case and validate a ticker; raises ``ValueError`` on junk."""
    sym = (symbol or "").strip().upper()
    if not _TICKER_RE.match(sym):
        raise ValueError(f"Invalid ticker symbol: {symbol!r}")
    return sym


# ── Pipeline output ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class PipelineAnswer:
    """What the orchestrator hands back to the request layer."""

    answer: str
    intent: QueryIntent | None = None
    results: tuple[AgentResult, ...] = ()
    no_agent_needed: bool = False
    cancelled: bool = False
