"""Logging bootstrap for entry points (manual eval, scripts).

Library modules only ever do ``logger = logging.getLogger(__name__)``;
handlers are attached here, once.
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3", "yfinance", "peewee")


def set_up_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach a console handler to the root logger and quieten dependencies."""
    root = logging.getLogger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)

    if not any(getattr(h, "_omniquery", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        handler._omniquery = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
