"""Logging helpers for bptflistings.

All modules obtain loggers through :func:`get_logger`. Queue and flush code
wraps its work in :func:`log_context` so that every line emitted while a
flush pass runs carries the pass number, phase and identity it concerns.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


class ContextualFormatter(logging.Formatter):
    """Formatter that appends the active context fields to each message."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = _log_context.get()
        if not ctx:
            return super().format(record)
        fields = " ".join(f"{key}={value}" for key, value in ctx.items())
        original = record.msg
        record.msg = f"{record.msg} [{fields}]"
        try:
            return super().format(record)
        finally:
            record.msg = original


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach ``fields`` to every log line emitted inside the block.

    Usage::

        with log_context(phase="create", pass_no=2):
            logger.info("Submitting %d listings", len(batch))

    Nested blocks merge their fields; the outer context is restored on exit.
    """
    token = _log_context.set({**_log_context.get(), **fields})
    try:
        yield
    finally:
        _log_context.reset(token)


_configured = False


def configure_logging(
    level: int | str = logging.INFO,
    third_party_level: int = logging.WARNING,
) -> None:
    """Install a single stderr handler with the contextual formatter.

    Call once from the CLI entry point or the embedding application.
    Repeated calls are ignored.
    """
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ContextualFormatter(DEFAULT_FORMAT))
    root.addHandler(handler)

    # Drop the fallback handlers get_logger() installed before configuration.
    for name, existing in list(logging.root.manager.loggerDict.items()):
        if name.startswith("bptflistings") and isinstance(existing, logging.Logger):
            existing.handlers.clear()
            existing.setLevel(logging.NOTSET)

    for name in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``.

    Library code must not configure the root logger, so when
    :func:`configure_logging` was never called this only makes sure context
    fields still show up on a handler attached to the package logger.
    """
    logger = logging.getLogger(name)
    if not _configured and not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(ContextualFormatter(DEFAULT_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """Log ``exc`` with its traceback and the given context fields."""
    with log_context(**context):
        logger.exception("%s: %s", message, exc)


__all__ = [
    "ContextualFormatter",
    "configure_logging",
    "get_logger",
    "log_context",
    "log_exception",
]
