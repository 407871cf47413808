"""
PersistenceSync — best-effort background saving.

Watches the version counters of the ScheduleStore, JournalLedger and
MemoryBook. When something changed, schedule() starts one background save
task and returns immediately; the scheduler loop never awaits it.

A failed save is logged and left dirty. It is retried on a later save
cycle once retry_interval has passed, never immediately, and it never rolls
back in-memory state.
"""

from __future__ import annotations

import asyncio
import logging
import time

from continuum.core.errors import PersistenceWriteFailed
from continuum.journal.ledger import JournalLedger
from continuum.memory import MemoryBook
from continuum.persistence.backends import LocalPersistence, PersistenceBackend, Settings
from continuum.scheduler.store import ScheduleStore

logger = logging.getLogger(__name__)


class PersistenceSync:
    def __init__(
        self,
        backend: PersistenceBackend,
        local: LocalPersistence,
        store: ScheduleStore,
        ledger: JournalLedger,
        memories: MemoryBook,
        journal_limit: int = 500,
        retry_interval: float = 30.0,
    ) -> None:
        self._backend = backend
        self._local = local
        self._store = store
        self._ledger = ledger
        self._memories = memories
        self._journal_limit = journal_limit
        self._retry_interval = retry_interval

        self._saved = {
            "directives": store.version,
            "journal": ledger.version,
            "memories": memories.version,
        }
        self._pending_settings: Settings | None = None
        self._retry_at = 0.0
        self._task: asyncio.Task | None = None

    @property
    def dirty(self) -> bool:
        return (
            self._store.version != self._saved["directives"]
            or self._ledger.version != self._saved["journal"]
            or self._memories.version != self._saved["memories"]
            or self._pending_settings is not None
        )

    def mark_settings(self, settings: Settings) -> None:
        self._pending_settings = settings

    def schedule(self) -> asyncio.Task | None:
        """Start a background save if anything is dirty. Never blocks."""
        if self._task is not None and not self._task.done():
            return self._task
        if not self.dirty or time.monotonic() < self._retry_at:
            return None
        self._task = asyncio.create_task(self.save_now(), name="persistence-sync")
        return self._task

    async def flush(self) -> bool:
        """Wait for an in-progress save, then save whatever is still dirty."""
        if self._task is not None and not self._task.done():
            await self._task
        if self.dirty:
            return await self.save_now()
        return True

    async def save_now(self) -> bool:
        """Save every dirty record. Returns True when all writes succeeded."""
        ok = True

        version = self._store.version
        if version != self._saved["directives"]:
            ok &= await self._attempt(
                "directives", version, self._backend.save_directives(self._store.all())
            )

        version = self._ledger.version
        if version != self._saved["journal"]:
            snapshot = self._ledger.snapshot(limit=self._journal_limit)
            ok &= await self._attempt("journal", version, self._local.save_journal(snapshot))

        version = self._memories.version
        if version != self._saved["memories"]:
            ok &= await self._attempt(
                "memories", version, self._local.save_memories(self._memories.all())
            )

        settings = self._pending_settings
        if settings is not None:
            try:
                await self._backend.save_settings(settings)
                if self._pending_settings is settings:
                    self._pending_settings = None
            except PersistenceWriteFailed as e:
                logger.warning(f"Settings not saved (will retry): {e.message}")
                ok = False

        self._retry_at = 0.0 if ok else time.monotonic() + self._retry_interval
        return ok

    async def _attempt(self, record: str, version: int, save) -> bool:
        try:
            await save
        except PersistenceWriteFailed as e:
            logger.warning(f"Saving {record} failed (will retry): {e.message}")
            return False
        self._saved[record] = version
        return True
