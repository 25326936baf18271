"""Query Router – decides which specialists a question needs.

One blocking LLM call per question, answered as a strict JSON object with
four booleans and a free-text ``reasoning``.  Anything that goes wrong
(LLM error, non-JSON reply, missing or non-boolean field) yields the
fail-open intent: every specialist is activated.
"""

from __future__ import annotations

import json
import logging

from openai import OpenAI

from ..config.settings import OPENAI_API_KEY, OPENAI_BASE_URL, PLANNER_MODEL
from ..models.schemas import QueryIntent

logger = logging.getLogger(__name__)

FALLBACK_REASONING = "Routing failed, activating all agents as fallback"

_SYSTEM = """\
You are a query routing specialist. Decide which specialised agents are
needed to answer the user's query.

AVAILABLE AGENTS:

1. FinancialAgent – stock prices and quotes, ticker symbols, historical
   prices, market movers, financial ratios and fundamentals, portfolio
   questions, economic indicators.
2. ResearchAgent – the user's own uploaded documents ("what do my files
   say about X", "my 2022 portfolio report").
3. NewsAgent – current events, breaking news, headlines, market news.
4. WeatherAgent – weather, temperature or forecast for a place or ZIP code.

RULES:
- A query may need several agents, e.g. "Compare NVDA in my docs to its
  current price" needs ResearchAgent and FinancialAgent.
- If unsure whether an agent is relevant, include it.
- Questions answerable from the conversation alone (e.g. "What is my
  favourite colour?") need NO agents – set every flag to false.

Respond ONLY with a JSON object in exactly this format (no markdown):
{
  "needsFinancial": true,
  "needsResearch": false,
  "needsNews": false,
  "needsWeather": false,
  "reasoning": "Query asks for a stock price"
}
"""

_USER_TEMPLATE = 'Analyze this query:\n\n"{question}"\n\nRespond with JSON indicating which agents are needed.'


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding ```json … ``` fence if the model added one."""
    text = (raw or "").strip()
    if "```" in text:
        text = text.split("```")[1]
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()
    return text


def parse_intent(raw: str) -> QueryIntent:
    """Parse a router reply; raises ``ValueError`` on anything malformed."""
    try:
        data = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Router reply is not JSON: {exc}") from exc
    return QueryIntent.from_dict(data)


class QueryRouter:
    """Classify a question into a multi-select ``QueryIntent``."""

    def __init__(self, model: str = PLANNER_MODEL):
        self.model = model
        self._llm = OpenAI(base_url=OPENAI_BASE_URL, api_key=OPENAI_API_KEY)

    def classify(self, question: str) -> QueryIntent:
        try:
            resp = self._llm.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": _SYSTEM},
                    {"role": "user", "content": _USER_TEMPLATE.format(question=question)},
                ],
                temperature=0,
            )
            intent = parse_intent(resp.choices[0].message.content or "")
        except Exception as exc:
            logger.warning("Intent routing error – activating all agents: %s", exc)
            return QueryIntent.all_agents(FALLBACK_REASONING)

        logger.info("Routing %r → %s (%s)", question[:80], intent.agent_summary(), intent.reasoning)
        return intent
