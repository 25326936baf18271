"""Manual end-to-end evaluator for the routing pipeline (live services).

Run from repo root:

python -m src.omniquery.agents.manual_eval
python -m src.omniquery.agents.manual_eval --quick
python -m src.omniquery.agents.manual_eval --query "Weather in 95054 and AAPL price"
python -m src.omniquery.agents.manual_eval --save reports/omniquery-manual-eval.json
"""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..config.settings import LOG_LEVEL
from ..models.schemas import PipelineAnswer
from ..services.logging_setup import set_up_logging
from ..tools.providers.rate_limits import default_tracker
from .orchestrator import Orchestrator

# Each scenario lists the domains the router is expected to flag.
DEFAULT_SCENARIOS: list[dict[str, Any]] = [
    {"name": "history_only", "query": "What is my favorite color?", "expect": []},
    {"name": "single_financial", "query": "Stock price of AAPL", "expect": ["financial"]},
    {
        "name": "financial_plus_docs",
        "query": "Compare AAPL price with my 2022 portfolio docs",
        "expect": ["financial", "research"],
    },
    {"name": "news", "query": "What are today's top business headlines?", "expect": ["news"]},
    {"name": "weather_zip", "query": "What's the weather in 95054?", "expect": ["weather"]},
    {
        "name": "cross_domain",
        "query": "Is it raining in Seattle, and how is MSFT trading after the latest news?",
        "expect": ["financial", "news", "weather"],
    },
]

QUICK_SCENARIOS = DEFAULT_SCENARIOS[:3]


def _detect_issues(scenario: dict[str, Any], response: PipelineAnswer) -> list[str]:
    issues: list[str] = []
    expected = set(scenario.get("expect") or [])
    if response.intent is not None and "expect" in scenario:
        routed = {d.value for d in response.intent.domains()}
        if routed != expected:
            issues.append(f"Routed to {sorted(routed)}, expected {sorted(expected)}")
    if not response.answer.strip():
        issues.append("Empty answer")
    for r in response.results:
        if not r.success:
            issues.append(f"{r.agent_name} failed: {r.result[:120]}")
    if expected and not response.results:
        issues.append("No specialist results returned")
    return issues


def _run_one(orch: Orchestrator, scenario: dict[str, Any]) -> dict[str, Any]:
    name, query = scenario["name"], scenario["query"]
    print(f"\n=== Scenario: {name} ===")
    print(f"Query: {query}")
    try:
        response = orch.answer(query, conversation_id=f"manual-eval-{name}")
    except Exception as exc:
        print(f"Error: {exc}")
        return {"scenario": name, "query": query, "ok": False, "issues": [f"Runtime error: {exc}"], "result": None}

    issues = _detect_issues(scenario, response)
    print(f"Agents: {response.intent.agent_summary() if response.intent else 'n/a'}")
    for r in response.results:
        print(f"  {r.agent_name}: {'ok' if r.success else 'FAILED'} in {r.execution_time_ms}ms")
    print(f"Answer: {response.answer[:300]}")
    print("Issues: " + ("none" if not issues else ""))
    for issue in issues:
        print(f"  - {issue}")

    return {"scenario": name, "query": query, "ok": not issues, "issues": issues, "result": asdict(response)}


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manual end-to-end routing eval")
    parser.add_argument("--quick", action="store_true", help="Run fewer scenarios")
    parser.add_argument("--query", default="", help="Run a single custom query instead of presets")
    parser.add_argument("--save", default="", help="Optional path to save the full JSON report")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    set_up_logging(LOG_LEVEL)

    if args.query:
        scenarios: list[dict[str, Any]] = [{"name": "custom", "query": args.query}]
    elif args.quick:
        scenarios = QUICK_SCENARIOS
    else:
        scenarios = DEFAULT_SCENARIOS

    orch = Orchestrator()
    rows = [_run_one(orch, s) for s in scenarios]
    passed = [r for r in rows if r["ok"]]

    print("\n=== Summary ===")
    print(f"Scenarios: {len(rows)}")
    print(f"Passed: {len(passed)}")
    print(f"Failed: {len(rows) - len(passed)}")
    print("\n=== Provider usage ===")
    print(default_tracker.all_stats_summary())

    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "total": len(rows),
        "passed": len(passed),
        "failed": len(rows) - len(passed),
        "provider_usage": default_tracker.all_stats_summary(),
        "items": rows,
    }
    if args.save:
        target = Path(args.save)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(report, indent=2, default=str), encoding="utf-8")
        print(f"Saved report to: {target}")

    return 0 if len(passed) == len(rows) else 1


if __name__ == "__main__":
    raise SystemExit(main())
