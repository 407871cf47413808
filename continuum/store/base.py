"""
RecordStore interface.

A small set of named records ("continuum_schedules", "continuum_journal",
...), each holding one JSON-serialisable value. Every record is loaded and
saved independently.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class RecordStore(ABC):
    """
    Abstract base class for local record backends.

    Values are plain JSON data (dicts, lists, strings, numbers); encoding
    is the backend's responsibility.

    Implementations:
        SQLiteRecordStore — file-based, default
        InMemoryRecordStore — for testing
    """

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Get a record by key. Returns default if not found."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Set a record. Overwrites if exists."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a record. Returns True if existed."""
        ...

    @abstractmethod
    async def keys(self) -> list[str]:
        """All record names, sorted."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the backend."""
        ...
