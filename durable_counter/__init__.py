"""
durable-counter
===============

Named, durably persisted counters behind a small FastAPI dispatcher.

Top-level names are limited to ``__version__`` and ``build_app()``; the
working parts live in submodules:

    services.counter   CounterInstance, CounterRegistry
    storage            store protocols, SQLite and in-memory backends
    routers            the counter dispatcher and health endpoints
    app                the FastAPI factory (create_app)
    cli                admin commands (migrate, get, incr, decr)
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__", "build_app"]


def build_app():
    """Build the app from the process configuration (FastAPI is imported on call)."""
    from .app import create_app

    return create_app()
