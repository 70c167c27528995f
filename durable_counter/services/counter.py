"""
Counter instances and the per-name registry.

A :class:`CounterInstance` owns one persisted integer and is the only writer
of its key space. Every operation holds the instance lock across the whole
read -> apply delta -> write sequence, so operations on one name run one at
a time, in arrival order (``asyncio.Lock`` wakes waiters FIFO), even though
the store I/O in between suspends the task. Operations on different names
share nothing and run concurrently.

The lock is process-local: two processes serving the same database would
each serialize their own callers only, which is why the launcher pins
uvicorn to a single worker.

Failure policy
--------------
Store faults (:class:`durable_counter.errors.StorageFault`) propagate
unchanged. Nothing is retried and no value is cached between calls: each
operation re-reads the store, so a failed write leaves the next caller
looking at whatever the store last committed.

Cancellation
------------
The locked read -> write sequence runs in its own task and callers await it
through ``asyncio.shield``. Cancelling a caller (a client disconnect, say)
stops the wait, not the commit: the lock stays held until the store call has
returned, so the next operation on that name never overlaps a write that is
still running on a worker thread. The store ends at the post-operation value
if the write succeeds and at the pre-operation value if it fails.

Instances are held weakly by the registry. A name nobody is operating on
owns no memory; the value lives only in the store.
"""

from __future__ import annotations

import asyncio
import threading
import weakref
from typing import Iterator

from durable_counter.logging import get_logger
from durable_counter.storage import CounterStorage, StoreBackend

log = get_logger(__name__)

# Key label under which each instance keeps its value; never exposed to callers.
VALUE_KEY = "value"


class CounterInstance:
    """
    A named counter backed by a single persisted integer.

    A value that was never written reads as 0.
    """

    def __init__(self, name: str, storage: CounterStorage) -> None:
        self.name = name
        self._storage = storage
        self._lock = asyncio.Lock()

    async def get(self) -> int:
        """Return the current value without modifying it."""
        async with self._lock:
            return await self._read()

    async def increment(self, amount: int = 1) -> int:
        """Add ``amount`` (any sign) to the value and return the new value."""
        return await self._apply(amount)

    async def decrement(self, amount: int = 1) -> int:
        """Subtract ``amount`` (any sign) from the value and return the new value."""
        return await self._apply(-amount)

    async def _read(self) -> int:
        value = await self._storage.get(VALUE_KEY)
        return 0 if value is None else value

    async def _apply(self, delta: int) -> int:
        return await asyncio.shield(self._commit(delta))

    async def _commit(self, delta: int) -> int:
        async with self._lock:
            value = await self._read() + delta
            # A zero delta is still written back: it is a committed operation.
            await self._storage.put(VALUE_KEY, value)
        log.debug("counter_committed", name=self.name, delta=delta, value=value)
        return value

    def __repr__(self) -> str:
        return f"CounterInstance(name={self.name!r})"


class CounterRegistry:
    """
    Maps each name to exactly one :class:`CounterInstance`.

    Instances are created on first lookup and dropped once nothing refers
    to them; a running or queued operation keeps its instance alive, so all
    pending operations on a name share one lock. The registry lock only
    guards insertion; operations on an instance never touch it.
    """

    def __init__(self, backend: StoreBackend) -> None:
        self.backend = backend
        self._instances: "weakref.WeakValueDictionary[str, CounterInstance]" = weakref.WeakValueDictionary()
        self._lock = threading.Lock()

    def get(self, name: str) -> CounterInstance:
        instance = self._instances.get(name)
        if instance is not None:
            return instance
        with self._lock:
            instance = self._instances.get(name)
            if instance is None:
                instance = CounterInstance(name, self.backend.scoped(name))
                self._instances[name] = instance
                log.debug("counter_instance_created", name=name)
        return instance

    def __contains__(self, name: object) -> bool:
        return name in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._instances))


__all__ = ["VALUE_KEY", "CounterInstance", "CounterRegistry"]
