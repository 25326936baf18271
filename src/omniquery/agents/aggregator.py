"""Aggregator – merges specialist results into one user-facing answer.

Policy, in order:
  1. no results      → fixed apology
  2. one result      → returned as-is (or error-prefixed); no LLM call
  3. several results → one synthesis call with source attribution
  4. synthesis fails → deterministic ``agent: result`` concatenation of the
     successful results, so nothing that succeeded is lost
"""

from __future__ import annotations

import logging
from typing import Sequence

from openai import OpenAI

from ..config.settings import OPENAI_API_KEY, OPENAI_BASE_URL, PLANNER_MODEL
from ..models.schemas import AgentResult

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "I couldn't process your request. No agents were able to provide information."
SINGLE_FAILURE_PREFIX = "I encountered an error: "
FALLBACK_HEADER = "I gathered information from multiple sources:\n\n"
EMPTY_RESULT_MESSAGE = "The {agent} returned no content for this question."

_SYSTEM = (
    "You synthesize answers from several specialised agents "
    "(FinancialAgent, ResearchAgent, NewsAgent, WeatherAgent) into one "
    "coherent, well-organised reply. "
    "Use only information the agents provided – add nothing of your own. "
    "Attribute facts to their source, e.g. \"According to the FinancialAgent…\" "
    "or \"The ResearchAgent found…\". "
    "If agents disagree, present both perspectives. "
    "If an agent failed, acknowledge it briefly without dwelling on it. "
    "Be concise but complete."
)


def build_results_block(results: Sequence[AgentResult]) -> str:
    return "\n---\n".join(
        f"[{r.agent_name}] (success: {str(r.success).lower()}, time: {r.execution_time_ms}ms)\n{r.result}"
        for r in results
    )


def fallback_answer(results: Sequence[AgentResult]) -> str:
    parts = [f"{r.agent_name}: {r.result}" for r in results if r.success]
    if not parts:
        return FALLBACK_HEADER + "None of the agents were able to return data for this question."
    return FALLBACK_HEADER + "\n\n".join(parts)


class Aggregator:
    """Combine ``AgentResult``s into the final answer text."""

    def __init__(self, model: str = PLANNER_MODEL):
        self.model = model
        self._llm = OpenAI(base_url=OPENAI_BASE_URL, api_key=OPENAI_API_KEY)

    def synthesize(self, question: str, results: Sequence[AgentResult]) -> str:
        if not results:
            return NO_RESULTS_MESSAGE

        if len(results) == 1:
            only = results[0]
            if not only.success:
                return SINGLE_FAILURE_PREFIX + only.result
            return only.result if only.result.strip() else EMPTY_RESULT_MESSAGE.format(agent=only.agent_name)

        prompt = (
            f'Original user question:\n"{question}"\n\n'
            f"Agent results:\n{build_results_block(results)}\n\n"
            "Synthesize these results into a unified, coherent answer for the user."
        )
        try:
            resp = self._llm.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": _SYSTEM},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.2,
            )
            answer = (resp.choices[0].message.content or "").strip()
            if not answer:
                raise ValueError("empty synthesis response")
        except Exception as exc:
            logger.error("Aggregator LLM error: %s", exc)
            return fallback_answer(results)

        logger.info("Synthesized answer from %d agent results", len(results))
        return answer
