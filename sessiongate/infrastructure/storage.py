"""Storage Backends: KeyValueStorage implementations behind the TokenStore.

Invariants:
    - get_many returns every requested key; absent keys map to None
    - set_many / delete_many are all-or-nothing (single dict update / single transaction)
    - delete_many on absent keys is a no-op

Design Decisions:
    - MemoryStorage: no await between reads and writes, so asyncio callers can never
      observe a half-applied update
    - SqlStorage: one transaction per call via session.begin()
"""

from collections.abc import Mapping, Sequence

from sqlalchemy import delete, select

from sessiongate.infrastructure.database import DatabaseSessionManager
from sessiongate.models.stored_entry import StoredEntry


class MemoryStorage:
    """Process-local store for tests and ephemeral clients."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get_many(self, keys: Sequence[str]) -> dict[str, str | None]:
        return {key: self._data.get(key) for key in keys}

    async def set_many(self, items: Mapping[str, str]) -> None:
        self._data.update(items)

    async def delete_many(self, keys: Sequence[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class SqlStorage:
    """SQLAlchemy-backed store (aiosqlite by default)."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def get_many(self, keys: Sequence[str]) -> dict[str, str | None]:
        async with self._db.session() as session:
            result = await session.execute(
                select(StoredEntry).where(StoredEntry.key.in_(list(keys))),
            )
            found = {row.key: row.value for row in result.scalars().all()}
        return {key: found.get(key) for key in keys}

    async def set_many(self, items: Mapping[str, str]) -> None:
        async with self._db.session() as session:
            async with session.begin():
                for key, value in items.items():
                    entry = await session.get(StoredEntry, key)
                    if entry is None:
                        session.add(StoredEntry(key=key, value=value))
                    else:
                        entry.value = value

    async def delete_many(self, keys: Sequence[str]) -> None:
        async with self._db.session() as session:
            async with session.begin():
                await session.execute(
                    delete(StoredEntry).where(StoredEntry.key.in_(list(keys))),
                )
