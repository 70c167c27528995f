"""
Routers package.

Order matters: the counter dispatcher is a catch-all and must be included
after every other route (health, the metrics exporter), otherwise it would
shadow them. See :func:`durable_counter.app.create_app`.
"""

from __future__ import annotations

from .counter import router as counter_router
from .health import router as health_router

__all__ = ["counter_router", "health_router"]
