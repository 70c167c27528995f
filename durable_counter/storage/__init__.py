"""
durable_counter.storage
=======================

Durable store facades for the counter service.

This package exposes:
- ``CounterStorage``: the async key/value view one counter instance sees.
- ``StoreBackend``: the shared backend every scoped view is carved out of.
- ``ScopedStorage``: binds a backend to one instance name.
- ``build_store(config)``: picks the backend named by configuration.

Backends implemented in sibling modules:
- sqlite.py : durable SQLite file (default)
- memory.py : process-local dict, lost on restart (tests / demos)

Reads return ``None`` for a key that was never written; mapping that to a
default is the caller's business, so "never written" and "written as 0" stay
distinguishable here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover
    from durable_counter.config import Config

# ----------------------------- Storage API -----------------------------------


@runtime_checkable
class CounterStorage(Protocol):
    """
    Key/value persistence scoped to a single counter instance.

    Implementations MUST make each ``put`` a single atomic key write and MUST
    raise :class:`durable_counter.errors.StorageFault` on I/O failure.
    """

    async def get(self, key: str) -> Optional[int]:
        """Return the stored integer, or None if the key was never written."""
        ...

    async def put(self, key: str, value: int) -> None:
        """Persist ``value`` under ``key``, replacing any previous value."""
        ...


@runtime_checkable
class StoreBackend(Protocol):
    """
    Shared backend holding the key spaces of every counter instance.
    """

    async def read(self, instance: str, key: str) -> Optional[int]:
        ...

    async def write(self, instance: str, key: str, value: int) -> None:
        ...

    async def ping(self) -> bool:
        """Cheap liveness check used by readiness checks."""
        ...

    async def close(self) -> None:
        ...

    def migrate(self) -> None:
        """Create or upgrade the backing schema (idempotent)."""
        ...

    def scoped(self, instance: str) -> CounterStorage:
        ...


@dataclass(frozen=True)
class ScopedStorage:
    """
    A :class:`CounterStorage` view bound to one instance name.

    Two views never share a key space unless they were built for the same name.
    """

    backend: StoreBackend
    instance: str

    async def get(self, key: str) -> Optional[int]:
        return await self.backend.read(self.instance, key)

    async def put(self, key: str, value: int) -> None:
        await self.backend.write(self.instance, key, value)


def encode_value(value: int) -> str:
    """
    Decimal text form of a counter value, as persisted.

    Raises ValueError past the interpreter's int/str conversion limit
    (``sys.get_int_max_str_digits()``, 4300 digits by default). Backends turn
    that into a StorageFault, so such a value is never committed.
    """
    return str(int(value))


def build_store(config: Optional["Config"] = None) -> StoreBackend:
    """
    Construct the backend selected by ``config.storage.backend``.

    Args:
      config: resolved configuration; if None, the cached process config is used.

    Returns:
      A SQLiteStore (default) or MemoryStore.
    """
    if config is None:
        from durable_counter.config import load_config

        config = load_config()

    if config.storage.backend == "memory":
        from .memory import MemoryStore

        return MemoryStore()

    from .sqlite import SQLiteStore

    return SQLiteStore(config.storage.db_path)


__all__ = [
    "CounterStorage",
    "StoreBackend",
    "ScopedStorage",
    "build_store",
    "encode_value",
]
