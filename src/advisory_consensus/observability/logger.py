"""Structured logging bound to the advisory request in flight.

``AdvisoryService.run`` opens an :func:`advisory_context` for each
request.  Its ``trace_id``, ``user_id`` and ``topic`` live in
structlog's context variables, so every record emitted while the request
runs carries them: structlog events directly, and the package's stdlib
``logging`` records through the ProcessorFormatter installed by
:func:`setup_logging`.  Concurrent requests run in separate asyncio
tasks and therefore never see each other's context.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.contextvars import (
    bind_contextvars,
    get_contextvars,
    reset_contextvars,
)

# Chatty client libraries kept at WARNING unless the root level is stricter.
_QUIET_LOGGERS = ("httpx", "httpcore")

# Handler installed by the last setup_logging call; replaced, never stacked.
_handler: logging.Handler | None = None


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

def get_trace_id() -> str:
    """Trace id of the current context, minting one if none is bound."""
    tid = get_contextvars().get("trace_id")
    if not tid:
        tid = new_trace_id()
    return tid


def set_trace_id(trace_id: str) -> None:
    bind_contextvars(trace_id=trace_id)


def new_trace_id() -> str:
    """Generate and bind a new trace id."""
    tid = uuid.uuid4().hex
    bind_contextvars(trace_id=tid)
    return tid


@contextmanager
def advisory_context(
    *,
    user_id: str,
    topic: str,
    trace_id: str | None = None,
    **extra: Any,
) -> Iterator[str]:
    """Bind one request's identity for the duration of the block.

    Yields the trace id.  On exit the previous bindings are restored, so
    nested or sequential requests in one task do not leak into each other.
    """
    tid = trace_id or uuid.uuid4().hex
    tokens = bind_contextvars(trace_id=tid, user_id=user_id, topic=topic, **extra)
    try:
        yield tid
    finally:
        reset_contextvars(**tokens)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def setup_logging(level: str = "INFO", format: str = "json") -> None:
    """Route structlog and stdlib logging through one renderer.

    Parameters
    ----------
    level:
        Root log level name (DEBUG, INFO, WARNING, ERROR).
    format:
        ``"json"`` for machine-readable lines, ``"console"`` for a terminal.
    """
    global _handler
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    _handler = handler
    root.setLevel(log_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
