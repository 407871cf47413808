"""
Persistence backends for the directive set and settings.

Two interchangeable strategies share one contract:

    load()                 → PersistedState(directives, settings)
    save_directives(list)
    save_settings(settings)

LocalPersistence keeps everything in the local RecordStore. RelayPersistence
keeps directives and settings on the relay. FallbackPersistence loads from
the relay and falls back to local storage when that fails. The strategy is
chosen once at startup by select_persistence() and injected; nothing else
re-derives which backend is active.

The journal and memory stubs always live locally.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from continuum.core.config import ContinuumConfig
from continuum.core.errors import ContinuumError, PersistenceWriteFailed, StorageError
from continuum.delivery.relay import RelayClient
from continuum.journal.entry import JournalEntry
from continuum.memory import MemoryStub
from continuum.scheduler.directive import Directive
from continuum.store.base import RecordStore

logger = logging.getLogger(__name__)

SCHEDULES_KEY = "continuum_schedules"
JOURNAL_KEY = "continuum_journal"
MEMORY_KEY = "continuum_memory"
SETTINGS_KEY = "continuum_settings"


# ━━━ State ━━━


@dataclass
class Settings:
    """Operator-editable settings (the direct agent endpoint)."""

    agent_base_url: str = ""
    agent_api_key: str = ""

    def to_dict(self) -> dict:
        if not self.agent_base_url:
            return {"owaConfig": None}
        return {"owaConfig": {"baseUrl": self.agent_base_url, "apiKey": self.agent_api_key}}

    @classmethod
    def from_dict(cls, d: dict | None) -> "Settings":
        owa = (d or {}).get("owaConfig") or {}
        return cls(
            agent_base_url=owa.get("baseUrl", "") or "",
            agent_api_key=owa.get("apiKey", "") or "",
        )


@dataclass
class PersistedState:
    directives: list[Directive] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    source: str = ""


def decode_directives(raw: Any) -> list[Directive]:
    """Decode stored directive dicts, skipping (and logging) broken records."""
    if not isinstance(raw, list):
        return []
    directives: list[Directive] = []
    for item in raw:
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object directive record: {item!r}")
            continue
        try:
            directives.append(Directive.from_dict(item))
        except (ContinuumError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping unreadable directive record: {e}")
    return directives


# ━━━ Strategies ━━━


class PersistenceBackend(ABC):
    """Where the directive set and settings live."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def load(self) -> PersistedState:
        """Raises StorageError when the backend cannot be read."""
        ...

    @abstractmethod
    async def save_directives(self, directives: list[Directive]) -> None:
        """Raises PersistenceWriteFailed."""
        ...

    @abstractmethod
    async def save_settings(self, settings: Settings) -> None:
        """Raises PersistenceWriteFailed."""
        ...


class LocalPersistence(PersistenceBackend):
    """Named JSON records in the local RecordStore."""

    def __init__(self, records: RecordStore) -> None:
        self._records = records

    @property
    def name(self) -> str:
        return "local"

    async def load(self) -> PersistedState:
        raw_directives = await self._records.get(SCHEDULES_KEY, [])
        raw_settings = await self._records.get(SETTINGS_KEY, {})
        return PersistedState(
            directives=decode_directives(raw_directives),
            settings=Settings.from_dict(raw_settings),
            source=self.name,
        )

    async def save_directives(self, directives: list[Directive]) -> None:
        await self._write(SCHEDULES_KEY, [d.to_dict() for d in directives])

    async def save_settings(self, settings: Settings) -> None:
        await self._write(SETTINGS_KEY, settings.to_dict())

    # ── Local-only records ───────────────────────────────────────────────────

    async def load_journal(self) -> list[JournalEntry]:
        raw = await self._records.get(JOURNAL_KEY, [])
        entries: list[JournalEntry] = []
        for item in raw if isinstance(raw, list) else []:
            if not isinstance(item, dict):
                continue
            try:
                entries.append(JournalEntry.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable journal record: {e}")
        return entries

    async def save_journal(self, entries: list[JournalEntry]) -> None:
        await self._write(JOURNAL_KEY, [e.to_dict() for e in entries])

    async def load_memories(self) -> list[MemoryStub]:
        raw = await self._records.get(MEMORY_KEY, [])
        stubs: list[MemoryStub] = []
        for item in raw if isinstance(raw, list) else []:
            if not isinstance(item, dict):
                continue
            try:
                stubs.append(MemoryStub.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable memory record: {e}")
        return stubs

    async def save_memories(self, stubs: list[MemoryStub]) -> None:
        await self._write(MEMORY_KEY, [s.to_dict() for s in stubs])

    async def _write(self, key: str, value: Any) -> None:
        try:
            await self._records.set(key, value)
        except StorageError as e:
            raise PersistenceWriteFailed(f"Local save of {key} failed: {e.message}") from e


class RelayPersistence(PersistenceBackend):
    """Directives and settings stored on the relay."""

    def __init__(self, relay: RelayClient) -> None:
        self._relay = relay

    @property
    def name(self) -> str:
        return "relay"

    async def load(self) -> PersistedState:
        try:
            raw_directives, raw_settings = await asyncio.gather(
                self._relay.get_schedules(), self._relay.get_settings()
            )
        except ContinuumError as e:
            raise StorageError(f"Relay load failed: {e.message}") from e
        return PersistedState(
            directives=decode_directives(raw_directives),
            settings=Settings.from_dict(raw_settings),
            source=self.name,
        )

    async def save_directives(self, directives: list[Directive]) -> None:
        try:
            await self._relay.save_schedules([d.to_dict() for d in directives])
        except ContinuumError as e:
            raise PersistenceWriteFailed(f"Relay save of directives failed: {e.message}") from e

    async def save_settings(self, settings: Settings) -> None:
        try:
            await self._relay.save_settings(settings.to_dict())
        except ContinuumError as e:
            raise PersistenceWriteFailed(f"Relay save of settings failed: {e.message}") from e


class FallbackPersistence(PersistenceBackend):
    """
    Load from primary; if that fails, load from fallback instead.

    Saves always target the primary so the relay stays authoritative once
    it comes back.
    """

    def __init__(self, primary: PersistenceBackend, fallback: PersistenceBackend) -> None:
        self._primary = primary
        self._fallback = fallback

    @property
    def name(self) -> str:
        return f"{self._primary.name}+{self._fallback.name}"

    async def load(self) -> PersistedState:
        try:
            return await self._primary.load()
        except StorageError as e:
            logger.warning(f"{self._primary.name} load failed, using {self._fallback.name}: {e.message}")
            return await self._fallback.load()

    async def save_directives(self, directives: list[Directive]) -> None:
        await self._primary.save_directives(directives)

    async def save_settings(self, settings: Settings) -> None:
        await self._primary.save_settings(settings)


def select_persistence(
    config: ContinuumConfig,
    local: LocalPersistence,
    relay: RelayClient | None = None,
) -> PersistenceBackend:
    """Pick the persistence strategy once, at startup."""
    if relay is None and config.relay.configured:
        relay = RelayClient(config.relay.url, config.relay.api_key, timeout=config.relay.timeout)
    if relay is not None:
        logger.info(f"Persisting directives and settings to relay at {relay.base_url}")
        return FallbackPersistence(RelayPersistence(relay), local)
    return local
