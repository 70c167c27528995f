"""In-process store backend. Nothing survives a restart; meant for tests and demos."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from durable_counter.errors import StorageFault

from . import ScopedStorage, encode_value


class MemoryStore:
    def __init__(self) -> None:
        self._data: Dict[Tuple[str, str], int] = {}

    async def read(self, instance: str, key: str) -> Optional[int]:
        return self._data.get((instance, key))

    async def write(self, instance: str, key: str, value: int) -> None:
        try:
            encode_value(value)
        except ValueError as e:
            # same ceiling as the SQLite backend
            raise StorageFault("write", instance=instance, key=key, reason="value exceeds the decimal digit limit") from e
        self._data[(instance, key)] = int(value)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    def migrate(self) -> None:
        return None

    def scoped(self, instance: str) -> ScopedStorage:
        return ScopedStorage(self, instance)

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["MemoryStore"]
