"""Key-value store backends: ``get(key) -> bytes | None`` and ``set(key, bytes)``."""
import asyncio
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.engine import Engine

from spike_alerts.db.models import KeyValueEntry
from spike_alerts.db.sessions import get_session, init_db


class KeyValueStore(Protocol):
    """Protocol for durable document storage.

    ``set`` replaces the whole value and raises on failure.
    """

    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes) -> None: ...


class MemoryKeyValueStore:
    """In-process store for tests and ephemeral runs."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    async def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def keys(self) -> list[str]:
        return list(self._data)


class SqlKeyValueStore:
    """SQLModel-backed store; blocking DB calls run in a worker thread."""

    def __init__(self, engine: Engine, *, create_tables: bool = True) -> None:
        self._engine = engine
        if create_tables:
            init_db(engine)

    def _get(self, key: str) -> bytes | None:
        with get_session(self._engine) as session:
            entry = session.get(KeyValueEntry, key)
            return bytes(entry.value) if entry is not None else None

    def _set(self, key: str, value: bytes) -> None:
        with get_session(self._engine) as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                entry = KeyValueEntry(key=key, value=value)
            else:
                entry.value = value
                entry.updated_at = datetime.now(timezone.utc)
            session.add(entry)

    async def get(self, key: str) -> bytes | None:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self._set, key, value)

    def dispose(self) -> None:
        self._engine.dispose()
