from __future__ import annotations

import asyncio
import sqlite3
import sys
import threading

import pytest

from durable_counter.errors import StorageFault
from durable_counter.services.counter import VALUE_KEY, CounterRegistry
from durable_counter.storage import ScopedStorage, build_store
from durable_counter.storage.memory import MemoryStore
from durable_counter.storage.sqlite import SQLiteStore


@pytest.mark.asyncio
async def test_missing_key_reads_none(db_path):
    store = SQLiteStore(db_path)
    try:
        assert await store.read("A", VALUE_KEY) is None
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_write_then_read(db_path):
    store = SQLiteStore(db_path)
    try:
        await store.write("A", VALUE_KEY, 42)
        await store.write("A", VALUE_KEY, -3)
        assert await store.read("A", VALUE_KEY) == -3
        assert await store.read("B", VALUE_KEY) is None
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_values_survive_reopen(db_path):
    first = SQLiteStore(db_path)
    counter = CounterRegistry(first).get("persist")
    await counter.increment(5)
    await counter.decrement(2)
    await first.close()

    # A brand-new store and registry, as after a process restart
    second = SQLiteStore(db_path)
    try:
        assert await CounterRegistry(second).get("persist").get() == 3
        assert await CounterRegistry(second).get("other").get() == 0
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_integers_beyond_64_bits_round_trip(db_path):
    store = SQLiteStore(db_path)
    big = -(2**100) + 7
    try:
        await store.write("big", VALUE_KEY, big)
        assert await store.read("big", VALUE_KEY) == big
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_close_then_reuse_reopens_lazily(db_path):
    store = SQLiteStore(db_path)
    await store.write("A", VALUE_KEY, 1)
    await store.close()
    assert await store.read("A", VALUE_KEY) == 1
    await store.close()


@pytest.mark.asyncio
async def test_migrate_is_idempotent(db_path):
    store = SQLiteStore(db_path)
    try:
        store.migrate()
        await store.write("A", VALUE_KEY, 9)
        store.migrate()
        assert await store.read("A", VALUE_KEY) == 9
        version = store.connection().execute(
            "SELECT value FROM meta_kv WHERE key = 'schema_version'"
        ).fetchone()
        assert version == ("1",)
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_write_error_becomes_storage_fault(db_path, monkeypatch):
    store = SQLiteStore(db_path)
    await store.write("A", VALUE_KEY, 1)

    def boom(*_args):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store, "_write_sync", boom)
    try:
        with pytest.raises(StorageFault) as info:
            await store.write("A", VALUE_KEY, 2)
        fault = info.value
        assert fault.status_code == 503
        assert fault.code == "storage_error"
        assert fault.details["operation"] == "write"
        assert fault.details["instance"] == "A"
        assert "disk I/O error" in fault.details["reason"]
        assert await store.read("A", VALUE_KEY) == 1
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_corrupt_value_becomes_storage_fault(db_path):
    store = SQLiteStore(db_path)
    try:
        store.connection().execute(
            "INSERT INTO counter_kv(instance, key, value, updated_at) VALUES (?, ?, ?, 0)",
            ("bad", VALUE_KEY, "not-a-number"),
        )
        with pytest.raises(StorageFault) as info:
            await store.read("bad", VALUE_KEY)
        assert info.value.operation == "read"
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_ping(db_path):
    store = SQLiteStore(db_path)
    try:
        assert await store.ping() is True
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_ping_reports_failure(db_path, monkeypatch):
    store = SQLiteStore(db_path)

    def boom():
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(store, "_ping_sync", boom)
    assert await store.ping() is False
    await store.close()


@pytest.mark.asyncio
async def test_scoped_views_do_not_share_keys():
    store = MemoryStore()
    a, b = store.scoped("A"), store.scoped("B")
    assert isinstance(a, ScopedStorage)
    await a.put(VALUE_KEY, 1)
    assert await a.get(VALUE_KEY) == 1
    assert await b.get(VALUE_KEY) is None


def test_build_store_follows_config(config):
    store = build_store(config)
    assert isinstance(store, SQLiteStore)
    assert store.path == config.storage.db_path.resolve()

    config.storage.backend = "memory"
    assert isinstance(build_store(config), MemoryStore)


class _SlowFirstWrite(SQLiteStore):
    """Blocks the worker thread writing value 1 until ``release`` is set."""

    def __init__(self, path) -> None:
        super().__init__(path)
        self.entered = threading.Event()
        self.release = threading.Event()

    def _write_sync(self, instance, key, value):
        if value == 1:
            self.entered.set()
            self.release.wait(5)
        super()._write_sync(instance, key, value)


@pytest.mark.asyncio
async def test_cancel_during_threaded_write_keeps_later_update(db_path):
    store = _SlowFirstWrite(db_path)
    counter = CounterRegistry(store).get("slow")
    try:
        first = asyncio.create_task(counter.increment(1))
        assert await asyncio.to_thread(store.entered.wait, 5)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        second = asyncio.create_task(counter.increment(5))
        await asyncio.sleep(0.05)
        assert not second.done()

        store.release.set()
        assert await second == 6
        assert await store.read("slow", VALUE_KEY) == 6
    finally:
        store.release.set()
        await store.close()


_digit_limit = getattr(sys, "get_int_max_str_digits", lambda: 0)()


@pytest.mark.skipif(not _digit_limit, reason="interpreter has no int/str digit limit")
@pytest.mark.asyncio
async def test_value_past_digit_limit_is_a_storage_fault(db_path):
    store = SQLiteStore(db_path)
    try:
        await store.write("huge", VALUE_KEY, 5)
        with pytest.raises(StorageFault) as info:
            await store.write("huge", VALUE_KEY, 10 ** (_digit_limit + 1))
        assert info.value.details["reason"] == "value exceeds the decimal digit limit"
        assert await store.read("huge", VALUE_KEY) == 5
    finally:
        await store.close()
