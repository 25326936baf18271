"""Orchestrator – Router → Specialists → Aggregator for one question.

1. **Route** – one blocking classification call (fails open to all agents)
2. **Fan out** – every flagged specialist runs concurrently on a thread
   pool; each is bounded by ``agent_timeout`` from the moment it starts,
   and a timeout becomes a failed ``AgentResult`` so faster specialists'
   answers survive
3. **Aggregate** – merge the results into one answer

A ``threading.Event`` passed as ``cancel_event`` aborts the run: queued
specialists are cancelled, running ones are signalled to stop, and the
aggregator is never called.

Usage::

    from src.omniquery.agents.orchestrator import Orchestrator
    print(Orchestrator().answer("Stock price of AAPL").answer)
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Mapping

from ..config.settings import AGENT_TIMEOUT, MAX_WORKERS
from ..models.schemas import AgentResult, Domain, PipelineAnswer, QueryIntent
from ..services.tracing import Tracer
from .aggregator import Aggregator
from .router import QueryRouter
from .specialist import PROFILES, SpecialistAgent, build_specialists

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Request cancelled before an answer could be produced."
INTERNAL_ERROR_MESSAGE = "I couldn't process your request due to an internal error."

# How often a waiting fan-out re-checks the cancel event.
_POLL_INTERVAL = 0.1

# Extra time a timed-out specialist gets to release its worker.
_STOP_GRACE = 1.0


class Orchestrator:
    """Answer one question end to end; never raises."""

    def __init__(
        self,
        router: QueryRouter | None = None,
        specialists: Mapping[Domain, SpecialistAgent] | None = None,
        aggregator: Aggregator | None = None,
        *,
        agent_timeout: float = AGENT_TIMEOUT,
        max_workers: int = MAX_WORKERS,
    ):
        self.router = router or QueryRouter()
        self.specialists = dict(specialists) if specialists is not None else build_specialists()
        self.aggregator = aggregator or Aggregator()
        self.agent_timeout = agent_timeout
        self.max_workers = max(1, max_workers)

    # ── public API ──────────────────────────────────────────────────────

    def answer(
        self,
        question: str,
        conversation_id: str = "",
        cancel_event: threading.Event | None = None,
    ) -> PipelineAnswer:
        tracer = Tracer.start("query_pipeline", session_id=conversation_id, metadata={"question": question})
        try:
            response = self._run(question, conversation_id, cancel_event, tracer)
        except Exception as exc:
            logger.exception("Pipeline error: %s", exc)
            response = PipelineAnswer(answer=INTERNAL_ERROR_MESSAGE)
        tracer.end(output=response.answer)
        return response

    # ── steps ───────────────────────────────────────────────────────────

    def _run(
        self,
        question: str,
        conversation_id: str,
        cancel_event: threading.Event | None,
        tracer: Tracer,
    ) -> PipelineAnswer:
        if _is_set(cancel_event):
            return PipelineAnswer(answer=CANCELLED_MESSAGE, cancelled=True)

        with tracer.span("route") as sp:
            intent = self.router.classify(question)
            sp.update(output={"agents": intent.agent_summary(), "reasoning": intent.reasoning})

        if not intent.needs_any_agent():
            logger.info("No specialist needed for %r", question[:80])
            return PipelineAnswer(
                answer=self.aggregator.synthesize(question, []),
                intent=intent,
                no_agent_needed=True,
            )

        if _is_set(cancel_event):
            return PipelineAnswer(answer=CANCELLED_MESSAGE, intent=intent, cancelled=True)

        with tracer.span("fan_out", metadata={"agents": intent.agent_summary()}) as sp:
            results = self.dispatch(intent, question, conversation_id, cancel_event)
            sp.update(output=[
                {"agent": r.agent_name, "success": r.success, "ms": r.execution_time_ms}
                for r in results or []
            ])

        if results is None or _is_set(cancel_event):
            logger.info("Request cancelled – skipping aggregation")
            return PipelineAnswer(
                answer=CANCELLED_MESSAGE,
                intent=intent,
                results=tuple(results or ()),
                cancelled=True,
            )

        with tracer.span("aggregate") as sp:
            text = self.aggregator.synthesize(question, results)
            sp.update(output=text[:500])

        return PipelineAnswer(answer=text, intent=intent, results=tuple(results))

    def dispatch(
        self,
        intent: QueryIntent,
        question: str,
        conversation_id: str = "",
        cancel_event: threading.Event | None = None,
    ) -> list[AgentResult] | None:
        """Run every flagged specialist concurrently.

        Each specialist's ``agent_timeout`` starts when a worker picks it up,
        so time spent queued behind a small pool does not count.  A specialist
        that times out, or every specialist when the request is cancelled,
        gets its stop event set.

        Returns one ``AgentResult`` per flagged domain (in domain order), or
        ``None`` if the request was cancelled while waiting.
        """
        domains = [d for d in intent.domains() if d in self.specialists]
        missing = [d for d in intent.domains() if d not in self.specialists]
        for d in missing:
            logger.warning("No specialist registered for %s", d.value)
        if not domains:
            return [AgentResult.failure(d.agent_name, "No specialist registered", 0) for d in missing]

        workers = min(self.max_workers, len(domains))
        stops = {d: threading.Event() for d in domains}
        started_at: dict[Domain, float] = {}

        def run(domain: Domain) -> AgentResult:
            started_at[domain] = time.monotonic()
            return self.specialists[domain].execute(question, conversation_id, stops[domain])

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="specialist")
        futures: dict[Domain, Future] = {d: pool.submit(run, d) for d in domains}
        # Hard stop for work still queued behind specialists that ignore their stop event.
        waves = -(-len(domains) // workers)
        ceiling = time.monotonic() + waves * (self.agent_timeout + _STOP_GRACE)
        timed_out: set[Domain] = set()
        try:
            while True:
                if _is_set(cancel_event):
                    live = [d for d, fut in futures.items() if not fut.done()]
                    for d in live:
                        futures[d].cancel()
                        stops[d].set()
                    logger.info("Cancelled %d in-flight specialist(s)", len(live))
                    return None

                now = time.monotonic()
                live_futures = []
                next_due = ceiling
                for d, fut in futures.items():
                    if fut.done() or d in timed_out:
                        continue
                    due = started_at[d] + self.agent_timeout if d in started_at else ceiling
                    if now >= min(due, ceiling):
                        timed_out.add(d)
                        stops[d].set()
                        fut.cancel()
                        continue
                    live_futures.append(fut)
                    next_due = min(next_due, due)
                if not live_futures:
                    break
                timeout = max(0.0, min(_POLL_INTERVAL, next_due - now))
                wait(live_futures, timeout=timeout, return_when=FIRST_COMPLETED)
        finally:
            # Never block on abandoned/timed-out specialists.
            pool.shutdown(wait=False, cancel_futures=True)

        results: list[AgentResult] = []
        for d in intent.domains():
            fut = futures.get(d)
            if fut is None:
                results.append(AgentResult.failure(d.agent_name, "No specialist registered", 0))
            elif d not in timed_out and fut.done() and not fut.cancelled():
                results.append(self._collect(d, fut))
            else:
                logger.warning("%s timed out after %ss", d.agent_name, self.agent_timeout)
                results.append(AgentResult.failure(
                    d.agent_name,
                    f"{PROFILES[d].error_prefix}timed out after {self.agent_timeout}s",
                    int(self.agent_timeout * 1000),
                ))
        return results

    @staticmethod
    def _collect(domain: Domain, fut: Future) -> AgentResult:
        try:
            return fut.result()
        except Exception as exc:
            # execute() should never raise; keep the one-result-per-domain guarantee anyway
            logger.error("%s raised: %s", domain.agent_name, exc)
            return AgentResult.failure(domain.agent_name, f"{PROFILES[domain].error_prefix}{exc}", 0)


def _is_set(event: threading.Event | None) -> bool:
    return event is not None and event.is_set()
