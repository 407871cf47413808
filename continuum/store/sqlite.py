"""
SQLite record store.

Uses aiosqlite for async SQLite access.
WAL mode enabled for concurrent read support.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from continuum.core.errors import StorageError
from continuum.store.base import RecordStore

logger = logging.getLogger(__name__)


class SQLiteRecordStore(RecordStore):
    """
    SQLite-backed named records holding JSON text.

    Usage:
        records = SQLiteRecordStore("~/.continuum/continuum.db")
        await records.initialize()

        await records.set("continuum_settings", {"owaConfig": None})
        settings = await records.get("continuum_settings", {})
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the database and create the records table."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._db = await aiosqlite.connect(str(self._db_path))
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA synchronous=NORMAL")
            await self._db.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    key        TEXT PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at REAL NOT NULL DEFAULT (strftime('%s', 'now'))
                )
                """
            )
            await self._db.commit()
            logger.debug(f"SQLite record store initialized at {self._db_path}")
        except Exception as e:
            raise StorageError(f"Failed to initialize SQLite at {self._db_path}: {e}") from e

    async def _ensure_db(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.initialize()
        return self._db  # type: ignore[return-value]

    async def get(self, key: str, default: Any = None) -> Any:
        db = await self._ensure_db()
        try:
            async with db.execute("SELECT value FROM records WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            raise StorageError(f"Failed to get record '{key}': {e}") from e
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except ValueError as e:
            raise StorageError(f"Record '{key}' is corrupt: {e}") from e

    async def set(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Record '{key}' is not JSON-serialisable: {e}") from e
        db = await self._ensure_db()
        try:
            await db.execute(
                """
                INSERT INTO records (key, value, updated_at) VALUES (?, ?, strftime('%s', 'now'))
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = strftime('%s', 'now')
                """,
                (key, encoded),
            )
            await db.commit()
        except Exception as e:
            raise StorageError(f"Failed to set record '{key}': {e}") from e

    async def delete(self, key: str) -> bool:
        db = await self._ensure_db()
        try:
            cursor = await db.execute("DELETE FROM records WHERE key = ?", (key,))
            await db.commit()
            return cursor.rowcount > 0
        except Exception as e:
            raise StorageError(f"Failed to delete record '{key}': {e}") from e

    async def keys(self) -> list[str]:
        db = await self._ensure_db()
        try:
            async with db.execute("SELECT key FROM records ORDER BY key") as cursor:
                rows = await cursor.fetchall()
            return [row[0] for row in rows]
        except Exception as e:
            raise StorageError(f"Failed to list records: {e}") from e

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
