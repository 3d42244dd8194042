"""Logging helpers for configuring per-run instruction traces."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = [
    "TRACE_LOGGER",
    "configure_trace_logger",
    "close_trace_logger",
]

TRACE_LOGGER = "lglob.trace"


def configure_trace_logger(
    path: Path,
    *,
    name: str = TRACE_LOGGER,
    level: int = logging.DEBUG,
    formatter: logging.Formatter | None = None,
) -> logging.Logger:
    """Return a logger writing instruction traces to ``path``.

    Trace handlers installed by an earlier call are removed first so
    repeated runs replace earlier traces instead of appending to them.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    close_trace_logger(logger)

    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler._lglob_trace = True  # type: ignore[attr-defined]
    handler.setFormatter(formatter or logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


def close_trace_logger(logger: logging.Logger) -> None:
    """Tear down handlers installed by :func:`configure_trace_logger`."""

    for handler in list(logger.handlers):
        if getattr(handler, "_lglob_trace", False):
            logger.removeHandler(handler)
            handler.close()
