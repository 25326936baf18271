"""Central configuration for the omniquery pipeline.

Every value is read once from the environment (``.env`` at the repo root is
loaded first) and exposed as a module-level constant so the rest of the
package can simply ``from ..config.settings import X``.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[3] / ".env")


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ── LLM ──────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
PLANNER_MODEL = os.getenv("PLANNER_MODEL", "gpt-4o-mini")   # router, aggregator, selector
WORKER_MODEL = os.getenv("WORKER_MODEL", "gpt-4o-mini")     # specialists

# ── Pipeline ─────────────────────────────────────────────────────────────
AGENT_TIMEOUT = _int("AGENT_TIMEOUT", 60)        # seconds per specialist
MAX_WORKERS = _int("MAX_WORKERS", 4)
MAX_SESSIONS = _int("MAX_SESSIONS", 256)     # live conversation sessions kept in memory
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
HTTP_TIMEOUT = _int("HTTP_TIMEOUT", 10)

# ── Provider selection ───────────────────────────────────────────────────
AGENTIC_SELECTION_ENABLED = _bool("AGENTIC_SELECTION_ENABLED", False)
AGENTIC_SELECTION_FALLBACK_ON_FAILURE = _bool("AGENTIC_SELECTION_FALLBACK_ON_FAILURE", True)

# ── Quote providers ──────────────────────────────────────────────────────
FINNHUB_API_KEY = os.getenv("FINNHUB_API_KEY", "")
FINNHUB_ENABLED = _bool("FINNHUB_ENABLED", True)
FINNHUB_PRIORITY = _int("FINNHUB_PRIORITY", 10)

ALPHA_VANTAGE_API_KEY = os.getenv("ALPHA_VANTAGE_API_KEY", "")
ALPHA_VANTAGE_ENABLED = _bool("ALPHA_VANTAGE_ENABLED", True)
ALPHA_VANTAGE_PRIORITY = _int("ALPHA_VANTAGE_PRIORITY", 99)

YAHOO_FINANCE_ENABLED = _bool("YAHOO_FINANCE_ENABLED", True)
YAHOO_FINANCE_PRIORITY = _int("YAHOO_FINANCE_PRIORITY", 100)

GOOGLE_FINANCE_ENABLED = _bool("GOOGLE_FINANCE_ENABLED", True)
GOOGLE_FINANCE_PRIORITY = _int("GOOGLE_FINANCE_PRIORITY", 3)

# ── Weather ──────────────────────────────────────────────────────────────
OPENWEATHER_API_KEY = os.getenv("OPENWEATHER_API_KEY", "")

# ── Weaviate (document search) ───────────────────────────────────────────
WEAVIATE_HTTP_HOST = os.getenv("WEAVIATE_HTTP_HOST", "localhost")
WEAVIATE_HTTP_PORT = _int("WEAVIATE_HTTP_PORT", 8080)
WEAVIATE_HTTP_SECURE = _bool("WEAVIATE_HTTP_SECURE", False)
WEAVIATE_GRPC_HOST = os.getenv("WEAVIATE_GRPC_HOST", "localhost")
WEAVIATE_GRPC_PORT = _int("WEAVIATE_GRPC_PORT", 50051)
WEAVIATE_GRPC_SECURE = _bool("WEAVIATE_GRPC_SECURE", False)
WEAVIATE_API_KEY = os.getenv("WEAVIATE_API_KEY", "")
WEAVIATE_COLLECTION = os.getenv("WEAVIATE_COLLECTION", "Omniquery_documents")

# ── Langfuse ─────────────────────────────────────────────────────────────
LANGFUSE_PUBLIC_KEY = os.getenv("LANGFUSE_PUBLIC_KEY", "")
LANGFUSE_SECRET_KEY = os.getenv("LANGFUSE_SECRET_KEY", "")
LANGFUSE_HOST = os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")
