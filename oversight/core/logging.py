"""Structured logging via structlog.

Output is human-readable in debug mode and one JSON object per line
otherwise. Three ids are attached to every line when they are known:

    request_id  the API request being served
    scan_id     the scan job being executed
    trace_id    in the worker, the request_id of the POST that enqueued it
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, TextIO

import structlog

from oversight.core.middleware import get_request_id

_scan_id: ContextVar[str] = ContextVar("oversight_scan_id", default="")
_trace_id: ContextVar[str] = ContextVar("oversight_trace_id", default="")

# Chatty at DEBUG: every HTTP request, every broker heartbeat.
_QUIET_LOGGERS = ("httpx", "httpcore", "celery.worker.heartbeat", "kombu")

_HANDLER_MARK = "_oversight_handler"


def get_scan_id() -> str:
    return _scan_id.get()


@contextmanager
def bind_scan_id(scan_id: str, trace_id: Optional[str] = None) -> Iterator[None]:
    """Tag log lines emitted inside the block with *scan_id*.

    *trace_id* is bound too when given; nested blocks restore the outer
    values on exit.
    """
    scan_token = _scan_id.set(scan_id)
    trace_token = _trace_id.set(trace_id) if trace_id is not None else None
    try:
        yield
    finally:
        if trace_token is not None:
            _trace_id.reset(trace_token)
        _scan_id.reset(scan_token)


def _inject_context_vars(logger: logging.Logger, method: str, event_dict: dict) -> dict:
    for key, value in (
        ("request_id", get_request_id()),
        ("scan_id", _scan_id.get()),
        ("trace_id", _trace_id.get()),
    ):
        if value:
            event_dict[key] = value
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_structlog(debug: bool = True, stream: Optional[TextIO] = None) -> None:
    """Route structlog and stdlib logging through one renderer. Idempotent.

    Modules log with ``logging.getLogger(__name__)``; their records pass
    through the same processors as structlog events, so the bound ids
    reach every line either way.
    """
    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    shared = _shared_processors()

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    setattr(handler, _HANDLER_MARK, True)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARK, False):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
