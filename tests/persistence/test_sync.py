"""Tests for continuum/persistence/sync.py"""
from __future__ import annotations

import pytest

from continuum.core.errors import StorageError
from continuum.journal.ledger import JournalLedger
from continuum.memory import MemoryBook
from continuum.persistence.backends import LocalPersistence, Settings
from continuum.persistence.sync import PersistenceSync
from continuum.scheduler.directive import Directive
from continuum.scheduler.store import ScheduleStore
from continuum.store.memory import InMemoryRecordStore


class FlakyRecords(InMemoryRecordStore):
    """Record store whose writes can be switched off."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = False
        self.writes = 0

    async def set(self, key, value):
        self.writes += 1
        if self.failing:
            raise StorageError("disk full")
        await super().set(key, value)


def _sync(records, retry_interval: float = 30.0, journal_limit: int = 500):
    local = LocalPersistence(records)
    store = ScheduleStore()
    ledger = JournalLedger()
    memories = MemoryBook()
    sync = PersistenceSync(
        local, local, store, ledger, memories,
        journal_limit=journal_limit, retry_interval=retry_interval,
    )
    return sync, local, store, ledger, memories


@pytest.mark.asyncio
class TestPersistenceSync:
    async def test_clean_state_schedules_nothing(self):
        sync, *_ = _sync(FlakyRecords())
        assert not sync.dirty
        assert sync.schedule() is None

    async def test_schedule_saves_in_background(self):
        records = FlakyRecords()
        sync, local, store, *_ = _sync(records)
        d = store.add(Directive.every("1m", "ping", "chat-1"))

        task = sync.schedule()
        assert task is not None
        assert await task is True

        assert not sync.dirty
        assert [x.id for x in (await local.load()).directives] == [d.id]

    async def test_failed_save_stays_dirty_and_waits_for_retry(self):
        records = FlakyRecords()
        sync, local, store, *_ = _sync(records, retry_interval=3600)
        store.add(Directive.every("1m", "ping", "chat-1"))
        records.failing = True

        assert await sync.save_now() is False
        assert sync.dirty
        assert len(store) == 1  # in-memory state untouched
        assert sync.schedule() is None  # retry window not reached

        records.failing = False
        assert await sync.flush() is True
        assert not sync.dirty

    async def test_retry_after_interval(self):
        records = FlakyRecords()
        sync, _, store, *_ = _sync(records, retry_interval=0)
        store.add(Directive.every("1m", "ping", "chat-1"))
        records.failing = True
        assert await sync.save_now() is False

        records.failing = False
        task = sync.schedule()
        assert task is not None
        assert await task is True

    async def test_journal_snapshot_bounded(self):
        records = FlakyRecords()
        sync, local, _, ledger, _ = _sync(records, journal_limit=2)
        for i in range(5):
            ledger.create_pending("d1", "p", i)

        await sync.flush()

        saved = await local.load_journal()
        assert [e.created_at for e in saved] == [4, 3]
        assert len(ledger) == 5

    async def test_memories_and_settings(self):
        records = FlakyRecords()
        sync, local, _, _, memories = _sync(records)
        memories.add("mood", "calm")
        sync.mark_settings(Settings("http://agent", "k"))
        assert sync.dirty

        assert await sync.flush() is True

        assert (await local.load_memories())[0].key == "mood"
        assert (await local.load()).settings.agent_base_url == "http://agent"
        assert not sync.dirty

    async def test_only_changed_records_written(self):
        records = FlakyRecords()
        sync, _, store, *_ = _sync(records)
        store.add(Directive.every("1m", "ping", "chat-1"))
        await sync.flush()
        assert records.writes == 1
