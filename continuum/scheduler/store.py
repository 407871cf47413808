"""
ScheduleStore — the single authoritative in-memory set of directives.

Owns every directive mutation: create, update, delete, enable/disable and
the last-fired stamp written during a claim. It has no timing logic.

All methods are synchronous: a claim reads and stamps a
directive without yielding to the event loop, so the next tick can never
observe a stale copy. Persistence watches `version` and saves in the
background.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterable

from continuum.core.errors import DirectiveError, DirectiveNotFoundError
from continuum.scheduler.directive import Directive

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "last_fired_at"})


class ScheduleStore:
    """
    Ordered in-memory store of directives (insertion order is firing order).

    Usage:
        store = ScheduleStore()
        store.add(Directive.every("10m", "status report", "chat-1"))
        store.set_enabled(directive_id, False)
    """

    def __init__(self, directives: Iterable[Directive] = ()) -> None:
        self._directives: dict[str, Directive] = {}
        self._version = 0
        for directive in directives:
            self._insert(directive)

    @property
    def version(self) -> int:
        """Bumped on every mutation; used to detect unsaved changes."""
        return self._version

    # ── Reads ────────────────────────────────────────────────────────────────

    def get(self, directive_id: str) -> Directive:
        try:
            return self._directives[directive_id]
        except KeyError:
            raise DirectiveNotFoundError(
                f"No directive with id {directive_id!r}", directive_id=directive_id
            ) from None

    def find(self, directive_id: str) -> Directive | None:
        return self._directives.get(directive_id)

    def all(self, enabled_only: bool = False) -> list[Directive]:
        return [d for d in self._directives.values() if d.enabled or not enabled_only]

    def __len__(self) -> int:
        return len(self._directives)

    def __contains__(self, directive_id: object) -> bool:
        return directive_id in self._directives

    # ── CRUD ─────────────────────────────────────────────────────────────────

    def add(self, directive: Directive) -> Directive:
        """Insert a new directive. Malformed schedule text is stored with a warning."""
        if directive.id in self._directives:
            raise DirectiveError(
                f"Directive {directive.id!r} already exists", directive_id=directive.id
            )
        self._insert(directive)
        self._version += 1
        logger.info(f"Directive added: {directive.name or directive.id} ({directive.description})")
        return directive

    def update(self, directive_id: str, **changes) -> Directive:
        """
        Replace editable fields of a directive.

        id and last_fired_at cannot be changed here; the stamp is owned by
        record_fired().
        """
        forbidden = _IMMUTABLE_FIELDS.intersection(changes)
        if forbidden:
            raise DirectiveError(
                f"Fields cannot be updated: {sorted(forbidden)}", directive_id=directive_id
            )
        current = self.get(directive_id)
        updated = dataclasses.replace(current, **changes)
        self._warn_if_invalid(updated)
        self._directives[directive_id] = updated
        self._version += 1
        return updated

    def remove(self, directive_id: str) -> bool:
        if self._directives.pop(directive_id, None) is None:
            return False
        self._version += 1
        logger.info(f"Directive removed: {directive_id}")
        return True

    def set_enabled(self, directive_id: str, enabled: bool) -> Directive:
        directive = self.get(directive_id)
        if directive.enabled != enabled:
            directive.enabled = enabled
            self._version += 1
        return directive

    def toggle(self, directive_id: str) -> Directive:
        directive = self.get(directive_id)
        return self.set_enabled(directive_id, not directive.enabled)

    def replace_all(self, directives: Iterable[Directive]) -> None:
        """Swap in a freshly loaded directive set."""
        self._directives.clear()
        for directive in directives:
            self._insert(directive)
        self._version += 1

    # ── Claim support ────────────────────────────────────────────────────────

    def record_fired(self, directive_id: str, at: int) -> Directive:
        """Stamp last_fired_at. Called only from a claim."""
        directive = self.get(directive_id)
        directive.last_fired_at = at
        self._version += 1
        return directive

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _insert(self, directive: Directive) -> None:
        self._warn_if_invalid(directive)
        self._directives[directive.id] = directive

    @staticmethod
    def _warn_if_invalid(directive: Directive) -> None:
        for warning in directive.validation_warnings():
            logger.warning(f"Directive {directive.name or directive.id} will never fire: {warning}")
