"""Optional Langfuse tracing for pipeline runs.

Without ``LANGFUSE_PUBLIC_KEY`` / ``LANGFUSE_SECRET_KEY`` every helper here is
a no-op, so routing and dispatch never depend on observability being up.

One ``Tracer`` per question:
  - root span ``query_pipeline`` (trace name, session = conversation id)
  - child spans ``route``, ``fan_out`` and ``aggregate``
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Generator

from ..config.settings import LANGFUSE_HOST, LANGFUSE_PUBLIC_KEY, LANGFUSE_SECRET_KEY

logger = logging.getLogger(__name__)

_client: Any | None = None
_client_checked = False
_client_lock = threading.Lock()


def _langfuse() -> Any | None:
    """Create the Langfuse client on first use; ``None`` when disabled."""
    global _client, _client_checked
    with _client_lock:
        if _client_checked:
            return _client
        _client_checked = True
        if not (LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY):
            logger.info("Langfuse keys not set – tracing disabled")
            return None
        try:
            from langfuse import Langfuse

            client = Langfuse(
                public_key=LANGFUSE_PUBLIC_KEY,
                secret_key=LANGFUSE_SECRET_KEY,
                host=LANGFUSE_HOST,
            )
            if client.auth_check():
                logger.info("Langfuse tracing enabled")
                _client = client
            else:
                logger.warning("Langfuse auth check failed – tracing disabled")
        except Exception as exc:
            logger.warning("Langfuse unavailable: %s", exc)
        return _client


class Tracer:
    """Root span for one question plus nested step spans.

    Usage::

        tracer = Tracer.start("query_pipeline", session_id=conv_id)
        with tracer.span("route") as sp:
            sp.update(output={"agents": "FinancialAgent"})
        tracer.end(output=answer)
    """

    def __init__(self, root_span: Any | None = None):
        self._root = root_span

    @classmethod
    def start(
        cls,
        name: str,
        *,
        session_id: str = "",
        metadata: dict | None = None,
    ) -> "Tracer":
        client = _langfuse()
        if client is None:
            return cls(None)
        try:
            root = client.start_span(name=name, metadata=metadata or {})
            root.update_trace(name=name, session_id=session_id or None, metadata=metadata or {})
            return cls(root)
        except Exception as exc:
            logger.warning("Langfuse trace start error: %s", exc)
            return cls(None)

    @property
    def enabled(self) -> bool:
        return self._root is not None

    @property
    def trace_id(self) -> str | None:
        return getattr(self._root, "trace_id", None) if self._root is not None else None

    @contextmanager
    def span(self, name: str, **metadata: Any) -> Generator["_Span", None, None]:
        sp = _Span.open(name, self._root, metadata)
        try:
            yield sp
        except Exception as exc:
            sp.update(level="ERROR", status_message=str(exc))
            raise
        finally:
            sp.close()

    def end(self, *, output: Any = None) -> None:
        if self._root is None:
            return
        try:
            if output is not None:
                self._root.update(output=output)
            self._root.end()
            client = _langfuse()
            if client is not None:
                client.flush()
        except Exception as exc:
            logger.debug("Langfuse end/flush error: %s", exc)


class _Span:
    def __init__(self, name: str, handle: Any | None):
        self.name = name
        self._handle = handle

    @classmethod
    def open(cls, name: str, parent: Any | None, metadata: dict) -> "_Span":
        if parent is None:
            return cls(name, None)
        try:
            return cls(name, parent.start_span(name=name, metadata=metadata or None))
        except Exception as exc:
            logger.debug("Langfuse span error (%s): %s", name, exc)
            return cls(name, None)

    def update(self, **kwargs: Any) -> None:
        if self._handle is None:
            return
        try:
            self._handle.update(**kwargs)
        except Exception as exc:
            logger.debug("Langfuse span update error (%s): %s", self.name, exc)

    def close(self) -> None:
        if self._handle is None:
            return
        try:
            self._handle.end()
        except Exception as exc:
            logger.debug("Langfuse span end error (%s): %s", self.name, exc)
