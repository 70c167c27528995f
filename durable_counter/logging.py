from __future__ import annotations

"""
structlog wiring for durable-counter.

Both our own events (``structlog.get_logger``) and records from libraries that
use stdlib ``logging`` directly (uvicorn, sqlite warnings, ...) end up on one
root handler and go through the same processor chain, so every line has the
same shape: ``timestamp``, ``level``, ``logger``, ``service``, ``event`` plus
whatever the call site and the request context bound.

    from durable_counter.logging import setup_logging, get_logger

    setup_logging(level="INFO", log_format="console")
    log = get_logger(__name__)
    log.info("counter_op", name="A", op="increment", count=3)

Defaults come from LOG_LEVEL / LOG_FORMAT when the caller passes nothing.
LOG_INCLUDE_STACKTRACE=1 forces tracebacks into the rendered event (they are
on by default for json and left to the console renderer otherwise).
"""

import logging
import os
from typing import Any, Dict, List, Optional

import structlog

_TRUTHY = ("1", "true", "yes", "on")
_LIBRARY_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _service_tagger(service_name: str):
    def tag(_logger: Any, _method: str, event: Dict[str, Any]) -> Dict[str, Any]:
        event.setdefault("service", service_name)
        return event

    return tag


def _shared_processors(service_name: str, with_tracebacks: bool) -> List[Any]:
    chain: List[Any] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
    ]
    if with_tracebacks:
        chain.append(structlog.processors.format_exc_info)
    chain += [structlog.processors.UnicodeDecoder(), _service_tagger(service_name)]
    return chain


def _renderer(log_format: str):
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=True, sort_keys=False)
    return structlog.processors.JSONRenderer(sort_keys=True)


def setup_logging(
    *,
    service_name: str = "durable-counter",
    level: Optional[str | int] = None,
    log_format: Optional[str] = None,
    include_stacktrace: Optional[bool] = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    May be called again (tests build many apps, the CLI reconfigures for the
    console); each call swaps the root handler instead of stacking another.
    """
    level = level or os.getenv("LOG_LEVEL", "").upper() or "INFO"
    log_format = (log_format or os.getenv("LOG_FORMAT") or "json").lower()
    if include_stacktrace is None:
        env = os.getenv("LOG_INCLUDE_STACKTRACE")
        include_stacktrace = env.strip().lower() in _TRUTHY if env is not None else log_format == "json"

    shared = _shared_processors(service_name, include_stacktrace)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # uvicorn installs its own handlers when it starts; route them through ours
    for name in _LIBRARY_LOGGERS:
        lib = logging.getLogger(name)
        lib.handlers = [handler]
        lib.propagate = False
        lib.setLevel(level)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**kv: Any) -> None:
    """Bind non-empty values into the structlog contextvars for the current task."""
    values = {k: v for k, v in kv.items() if v}
    if values:
        structlog.contextvars.bind_contextvars(**values)


def clear_request_context(*keys: str) -> None:
    """Unbind ``keys``, or everything when called without arguments."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()


__all__ = [
    "setup_logging",
    "get_logger",
    "bind_request_context",
    "clear_request_context",
]
