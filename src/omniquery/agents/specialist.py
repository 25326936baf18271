"""Specialist agents – one bounded agent per domain.

Each specialist is built once with a domain prompt and that domain's
frozen tool table (see ``tools.registry``).  The openai-agents ``Agent``
only ever receives function tools made from that table, so a specialist
cannot call another domain's tools.

``execute`` never raises: any exception (tool, LLM, network) becomes a
failed ``AgentResult`` carrying a domain-prefixed message and the time
spent up to the failure.
Setting the optional ``cancel_event`` stops a run in flight; the result is
then a failure ending in ``cancelled``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

import agents
from openai import AsyncOpenAI

from ..config.settings import OPENAI_API_KEY, OPENAI_BASE_URL, WORKER_MODEL
from ..models.errors import RunCancelledError
from ..models.schemas import AgentResult, Domain
from ..services.memory import ConversationMemory, default_memory
from ..tools.document_tool import build_research_tools
from ..tools.finance_tool import build_financial_tools
from ..tools.news_tool import build_news_tools
from ..tools.providers.chain import ResilientQuoteChain
from ..tools.registry import DOMAIN_CAPABILITIES, Capability, ToolTable
from ..tools.weather_tool import build_weather_tools

logger = logging.getLogger(__name__)

# Hard upper bound on tool-call turns inside one specialist run.
_MAX_TURNS = 8

# How often a running agent re-checks its cancel event.
_CANCEL_POLL = 0.05


# ── Domain prompts ───────────────────────────────────────────────────────

_FINANCIAL_PROMPT = """\
You are a financial data specialist: stock quotes, historical prices,
financial ratios, market movers and economic indicators.

Rules:
- ALWAYS call a tool for numbers; never invent prices or ratios.
- Use get_stock_quote for current prices, get_historical_prices for trends,
  analyze_financial_ratios for fundamentals, get_market_movers for "what's
  moving today", get_economic_indicators for macro conditions.
- Cite the data source returned by the tool (e.g. "According to Finnhub…").
- Be concise and data-driven. Do not give investment advice.
"""

_RESEARCH_PROMPT = """\
You are a document research specialist. You answer from the user's own
uploaded documents only.

Rules:
- Search with query_documents; when the question names a year or a date
  range use query_documents_by_year or query_documents_by_date_range; use
  query_documents_advanced to narrow by document type.
- Quote or paraphrase the passages you found and name the source document.
- If the search returns "No relevant documents found.", say plainly that
  the documents do not cover the question. Do not guess.
"""

_NEWS_PROMPT = """\
You are a news specialist covering current events and market news.

Rules:
- Use get_market_news for a specific topic, company or ticker and
  get_headlines_by_category for general headlines.
- Summarise the most relevant stories and name each outlet with its date.
- Only report what the tools return; do not speculate beyond the articles.
"""

_WEATHER_PROMPT = """\
You are a weather specialist.

Rules:
- Use get_weather_by_zip_code when the user gives a US ZIP code, otherwise
  get_weather_by_location.
- Report conditions, temperature (°F), feels-like, humidity and wind.
- Keep the answer short and practical.
"""


@dataclass(frozen=True)
class SpecialistProfile:
    domain: Domain
    instructions: str
    error_prefix: str
    # Failures of these tools abort the run instead of being shown to the model.
    hard_fail: frozenset[Capability] = frozenset()


PROFILES: dict[Domain, SpecialistProfile] = {
    Domain.FINANCIAL: SpecialistProfile(
        Domain.FINANCIAL, _FINANCIAL_PROMPT, "Failed to fetch financial data: ",
        hard_fail=frozenset({Capability.GET_STOCK_QUOTE}),
    ),
    Domain.RESEARCH: SpecialistProfile(Domain.RESEARCH, _RESEARCH_PROMPT, "Failed to search documents: "),
    Domain.NEWS: SpecialistProfile(Domain.NEWS, _NEWS_PROMPT, "Failed to fetch news: "),
    Domain.WEATHER: SpecialistProfile(Domain.WEATHER, _WEATHER_PROMPT, "Failed to fetch weather data: "),
}


# ── Agent runner (module-level so tests can patch it) ───────────────────

def _run_agent(
    agent: agents.Agent,
    question: str,
    session: Any | None,
    cancel_event: threading.Event | None = None,
) -> str:
    """Run one agent to completion on a private event loop.

    The run is an asyncio task; setting ``cancel_event`` cancels it at its
    next await (LLM call or tool hand-off) and raises ``RunCancelledError``.
    """
    result = asyncio.run(_until_cancelled(
        agents.Runner.run(agent, input=question, session=session, max_turns=_MAX_TURNS),
        cancel_event,
    ))
    return str(result.final_output or "")


async def _until_cancelled(coro, cancel_event: threading.Event | None):
    task = asyncio.ensure_future(coro)
    while not task.done():
        if cancel_event is not None and cancel_event.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise RunCancelledError("cancelled")
        await asyncio.wait({task}, timeout=_CANCEL_POLL)
    return task.result()


# ── Specialist ──────────────────────────────────────────────────────────

class SpecialistAgent:
    """A domain-scoped agent exposing ``execute(question, conversation_id, cancel_event)``."""

    def __init__(
        self,
        profile: SpecialistProfile,
        tools: ToolTable,
        *,
        model: str = WORKER_MODEL,
        memory: ConversationMemory | None = None,
    ):
        if set(tools) != DOMAIN_CAPABILITIES[profile.domain]:
            raise ValueError(f"Tool table does not match the {profile.domain.value} domain")
        self.profile = profile
        self.domain = profile.domain
        self.name = profile.domain.agent_name
        self.tools = tools
        self.model = model
        self.memory = memory if memory is not None else default_memory
        self._function_tools = [
            agents.function_tool(fn, name_override=cap.value, failure_error_function=None)
            if cap in profile.hard_fail
            else agents.function_tool(fn, name_override=cap.value)
            for cap, fn in sorted(tools.items(), key=lambda kv: kv[0].value)
        ]
        logger.info("%s ready with tools: %s", self.name, ", ".join(t.name for t in self._function_tools))

    @property
    def tool_names(self) -> list[str]:
        return [t.name for t in self._function_tools]

    def _build_agent(self) -> agents.Agent:
        # Fresh async client per run: each run owns its own event loop.
        client = AsyncOpenAI(base_url=OPENAI_BASE_URL, api_key=OPENAI_API_KEY)
        return agents.Agent(
            name=self.name,
            instructions=self.profile.instructions,
            tools=list(self._function_tools),
            model=agents.OpenAIChatCompletionsModel(model=self.model, openai_client=client),
        )

    def execute(
        self,
        question: str,
        conversation_id: str = "",
        cancel_event: threading.Event | None = None,
    ) -> AgentResult:
        start = time.perf_counter()
        try:
            if cancel_event is not None and cancel_event.is_set():
                raise RunCancelledError("cancelled")
            session = self.memory.session_for(conversation_id, self.domain.value)
            answer = _run_agent(self._build_agent(), question, session, cancel_event)
            if not answer.strip():
                raise ValueError("agent returned an empty answer")
        except Exception as exc:
            elapsed = _elapsed_ms(start)
            logger.error("[%s] failed after %dms: %s", self.name, elapsed, exc)
            return AgentResult.failure(self.name, f"{self.profile.error_prefix}{exc}", elapsed)

        elapsed = _elapsed_ms(start)
        logger.info("[%s] completed in %dms", self.name, elapsed)
        return AgentResult.ok(self.name, answer, elapsed)


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.perf_counter() - start) * 1000))


# ── Factories ───────────────────────────────────────────────────────────

def financial_agent(chain: ResilientQuoteChain | None = None, **kwargs) -> SpecialistAgent:
    return SpecialistAgent(PROFILES[Domain.FINANCIAL], build_financial_tools(chain), **kwargs)


def research_agent(**kwargs) -> SpecialistAgent:
    return SpecialistAgent(PROFILES[Domain.RESEARCH], build_research_tools(), **kwargs)


def news_agent(**kwargs) -> SpecialistAgent:
    return SpecialistAgent(PROFILES[Domain.NEWS], build_news_tools(), **kwargs)


def weather_agent(**kwargs) -> SpecialistAgent:
    return SpecialistAgent(PROFILES[Domain.WEATHER], build_weather_tools(), **kwargs)


def build_specialists(
    chain: ResilientQuoteChain | None = None,
    memory: ConversationMemory | None = None,
) -> dict[Domain, SpecialistAgent]:
    return {
        Domain.FINANCIAL: financial_agent(chain, memory=memory),
        Domain.RESEARCH: research_agent(memory=memory),
        Domain.NEWS: news_agent(memory=memory),
        Domain.WEATHER: weather_agent(memory=memory),
    }
