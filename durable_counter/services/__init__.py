"""
durable_counter.services
========================

Service layer of durable-counter.

Public submodules
-----------------
- counter : CounterInstance (read / increment / decrement one persisted
            integer) and CounterRegistry (one instance per name).
"""

from __future__ import annotations

from .counter import VALUE_KEY, CounterInstance, CounterRegistry

__all__ = ["VALUE_KEY", "CounterInstance", "CounterRegistry"]
