"""
Shared pytest fixtures:
- Temporary SQLite database per test
- A configured FastAPI app and an httpx AsyncClient bound to it (no server)
- Instrumented store backends: one that suspends on every call (to expose
  interleaving) and one that fails on demand (to exercise fault propagation)
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from durable_counter.app import create_app
from durable_counter.config import Config, load_config
from durable_counter.errors import StorageFault
from durable_counter.storage.memory import MemoryStore


# ---------- STORES ----------


class YieldingStore(MemoryStore):
    """
    MemoryStore that gives the event loop away around every read and write,
    the way real I/O would. Without per-name serialization, concurrent
    read-modify-writes against it lose updates.
    """

    def __init__(self) -> None:
        super().__init__()
        self.writes: List[Tuple[str, int]] = []

    async def read(self, instance: str, key: str) -> Optional[int]:
        await asyncio.sleep(0)
        value = await super().read(instance, key)
        await asyncio.sleep(0)
        return value

    async def write(self, instance: str, key: str, value: int) -> None:
        await asyncio.sleep(0)
        await super().write(instance, key, value)
        self.writes.append((instance, value))


class FailingStore(MemoryStore):
    """MemoryStore whose reads and/or writes raise StorageFault while the flags are set."""

    def __init__(self, *, fail_reads: bool = False, fail_writes: bool = False) -> None:
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def read(self, instance: str, key: str) -> Optional[int]:
        if self.fail_reads:
            raise StorageFault("read", instance=instance, key=key, reason="injected")
        return await super().read(instance, key)

    async def write(self, instance: str, key: str, value: int) -> None:
        if self.fail_writes:
            raise StorageFault("write", instance=instance, key=key, reason="injected")
        await super().write(instance, key, value)


class GatedStore(MemoryStore):
    """
    MemoryStore whose write of ``gate_value`` parks until ``release`` is set.
    ``entered`` fires once that write has started.
    """

    def __init__(self, gate_value: int) -> None:
        super().__init__()
        self.gate_value = gate_value
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def write(self, instance: str, key: str, value: int) -> None:
        if value == self.gate_value:
            self.entered.set()
            await self.release.wait()
        await super().write(instance, key, value)


@pytest.fixture
def gated_store() -> GatedStore:
    return GatedStore(gate_value=1)


@pytest.fixture
def yielding_store() -> YieldingStore:
    return YieldingStore()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


# ---------- CONFIG & APP ----------


@pytest.fixture(autouse=True)
def _fresh_config_cache() -> None:
    load_config.cache_clear()
    yield
    load_config.cache_clear()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "counters.db"


@pytest.fixture
def config(db_path: Path) -> Config:
    return Config(
        log_level="WARNING",
        STORE_BACKEND="sqlite",
        COUNTER_DB_PATH=str(db_path),
    )


@pytest.fixture
def app(config: Config) -> FastAPI:
    return create_app(config)


@pytest_asyncio.fixture
async def aclient(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """
    Async HTTP client bound to the ASGI app; no server, no lifespan.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    await app.state.store.close()
