"""Persistent key-value store."""

import logging
from typing import Protocol

import aiosqlite

from carenudge.errors import TransientIOError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class SqliteKeyValueStore:
    """Key-value store backed by the kv_store table."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get(self, key: str) -> str | None:
        try:
            async with self.db.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else None
        except aiosqlite.Error as e:
            raise TransientIOError(f"kv get {key} failed: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = datetime('now')
                """,
                (key, value),
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            raise TransientIOError(f"kv set {key} failed: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            await self.db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await self.db.commit()
        except aiosqlite.Error as e:
            raise TransientIOError(f"kv remove {key} failed: {e}") from e
