"""
In-memory record store — for testing.

Values are JSON round-tripped on write so tests see exactly what a
persistent backend would return.
"""

from __future__ import annotations

import json
from typing import Any

from continuum.core.errors import StorageError
from continuum.store.base import RecordStore


class InMemoryRecordStore(RecordStore):
    """
    Usage:
        records = InMemoryRecordStore()
        await records.set("continuum_schedules", [])
        assert await records.get("continuum_schedules") == []
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else default

    async def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Record '{key}' is not JSON-serialisable: {e}") from e

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def keys(self) -> list[str]:
        return sorted(self._data)

    async def close(self) -> None:
        self._data.clear()
