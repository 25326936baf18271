"""Exception types raised inside tool implementations.

Component boundaries (router, specialists, aggregator, quote chain) never
let these escape; they exist so a tool can signal a hard failure that the
owning specialist turns into a failed ``AgentResult``.
"""

from __future__ import annotations


class OmniQueryError(Exception):
    """Base class for all omniquery errors."""


class AllProvidersFailedError(OmniQueryError):
    """Every quote provider was tried (or skipped) without a valid quote."""

    def __init__(self, symbol: str, detail: str = ""):
        self.symbol = symbol
        self.detail = detail or f"All providers failed for {symbol}"
        super().__init__(self.detail)


class ToolConfigurationError(OmniQueryError):
    """A tool is missing credentials or settings it needs to run."""


class RunCancelledError(OmniQueryError):
    """A specialist run was stopped by its cancel signal before finishing."""
