"""
JournalLedger — append-only log of firing attempts.

Entries are prepended (most recent first) and never deleted here;
retention is the host's concern and is applied only when a snapshot is
persisted. The only permitted mutation is the single PENDING → terminal
transition.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
from dataclasses import dataclass, field
from typing import Iterable

from continuum.core.errors import JournalError, JournalTransitionError
from continuum.journal.entry import JournalEntry, JournalOutcome, JournalStatus

logger = logging.getLogger(__name__)


@dataclass
class JournalPage:
    """One page of a journal listing."""

    entries: list[JournalEntry] = field(default_factory=list)
    has_more: bool = False


class JournalLedger:
    """
    In-memory journal.

    Usage:
        ledger = JournalLedger()
        entry = ledger.create_pending(directive.id, directive.prompt, now)
        ledger.transition(entry.id, JournalOutcome.success("hello", tier="direct"))
    """

    def __init__(self, entries: Iterable[JournalEntry] = ()) -> None:
        self._entries: list[JournalEntry] = []
        self._by_id: dict[str, JournalEntry] = {}
        self._seq: dict[str, int] = {}
        self._counter = itertools.count()
        self._loaded = itertools.count(1)  # loaded entries sort beneath appended ones
        self._version = 0
        self.load(entries)

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._entries)

    # ── Writes ───────────────────────────────────────────────────────────────

    def append(self, entry: JournalEntry) -> JournalEntry:
        if entry.id in self._by_id:
            raise JournalError(f"Journal entry {entry.id!r} already exists")
        self._entries.insert(0, entry)
        self._by_id[entry.id] = entry
        self._seq[entry.id] = next(self._counter)
        self._version += 1
        return entry

    def create_pending(self, directive_id: str, prompt: str, created_at: int) -> JournalEntry:
        return self.append(
            JournalEntry(directive_id=directive_id, prompt=prompt, created_at=created_at)
        )

    def transition(self, entry_id: str, outcome: JournalOutcome) -> JournalEntry:
        """Apply the single terminal transition to a PENDING entry."""
        current = self._by_id.get(entry_id)
        if current is None:
            raise JournalTransitionError(f"No journal entry with id {entry_id!r}")
        if current.status.terminal:
            raise JournalTransitionError(
                f"Journal entry {entry_id!r} is already {current.status.value}"
            )
        if not outcome.status.terminal:
            raise JournalTransitionError("Entries can only transition to a terminal status")

        updated = dataclasses.replace(
            current,
            status=outcome.status,
            response=outcome.response,
            tier=outcome.tier,
            archived=outcome.archived,
        )
        self._entries[self._entries.index(current)] = updated
        self._by_id[entry_id] = updated
        self._version += 1
        logger.debug(f"Journal {entry_id} → {outcome.status.value} via {outcome.tier or '-'}")
        return updated

    def interrupt_pending(self, cause: str) -> list[JournalEntry]:
        """Fail every PENDING entry; used for entries left over from a previous run."""
        return [
            self.transition(entry.id, JournalOutcome.failure(cause))
            for entry in self.pending()
        ]

    def load(self, entries: Iterable[JournalEntry]) -> None:
        """Add previously persisted entries (given newest-first) beneath current ones."""
        for entry in entries:
            if entry.id in self._by_id:
                continue
            self._entries.append(entry)
            self._by_id[entry.id] = entry
            self._seq[entry.id] = -next(self._loaded)
        self._version += 1

    # ── Reads ────────────────────────────────────────────────────────────────

    def get(self, entry_id: str) -> JournalEntry | None:
        return self._by_id.get(entry_id)

    def query(
        self,
        directive_id: str | None = None,
        since: int | None = None,
        until: int | None = None,
        status: JournalStatus | None = None,
    ) -> list[JournalEntry]:
        """
        Filtered read projection, newest first by created_at.

        Ties on created_at are broken by insertion order (later first).
        since/until are inclusive epoch-ms bounds.
        """
        matches = [
            e for e in self._entries
            if (directive_id is None or e.directive_id == directive_id)
            and (since is None or e.created_at >= since)
            and (until is None or e.created_at <= until)
            and (status is None or e.status is status)
        ]
        matches.sort(key=lambda e: (e.created_at, self._seq[e.id]), reverse=True)
        return matches

    def page(self, limit: int = 50, skip: int = 0, **filters) -> JournalPage:
        matches = self.query(**filters)
        window = matches[skip:skip + limit]
        return JournalPage(entries=window, has_more=skip + limit < len(matches))

    def pending(self) -> list[JournalEntry]:
        return self.query(status=JournalStatus.PENDING)

    def snapshot(self, limit: int | None = None) -> list[JournalEntry]:
        """Newest-first copy for persistence, optionally bounded."""
        ordered = self.query()
        return ordered[:limit] if limit is not None else ordered
