"""
JournalEntry — one record of an attempted directive firing.

Lifecycle:
    PENDING  (created at claim time, placeholder response)
      → SUCCESS (response text)   or
      → FAILED  (human-readable cause)
Terminal entries are never modified again.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

PENDING_RESPONSE = "Transmitting..."


class JournalStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not JournalStatus.PENDING


@dataclass(frozen=True)
class JournalOutcome:
    """The terminal result applied to a pending entry."""

    status: JournalStatus
    response: str
    tier: str = ""
    archived: bool = False

    @classmethod
    def success(cls, response: str, tier: str = "", archived: bool = False) -> "JournalOutcome":
        return cls(JournalStatus.SUCCESS, response, tier, archived)

    @classmethod
    def failure(cls, error: str, tier: str = "") -> "JournalOutcome":
        return cls(JournalStatus.FAILED, error, tier, False)


@dataclass
class JournalEntry:
    """A single journal record."""

    directive_id: str
    prompt: str         # snapshot at fire time
    created_at: int     # epoch ms

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    response: str = PENDING_RESPONSE
    status: JournalStatus = JournalStatus.PENDING
    tier: str = ""          # delivery tier that produced the outcome
    archived: bool = False  # True only when the relay stored it durably

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.created_at,
            "scheduleId": self.directive_id,
            "prompt": self.prompt,
            "response": self.response,
            "status": self.status.value,
            "tier": self.tier,
            "archived": self.archived,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "JournalEntry":
        return cls(
            id=d["id"],
            created_at=int(d.get("timestamp") or 0),
            directive_id=str(d.get("scheduleId", "")),
            prompt=d.get("prompt", ""),
            response=d.get("response", ""),
            status=JournalStatus(d.get("status", JournalStatus.SUCCESS.value)),
            tier=d.get("tier", ""),
            archived=bool(d.get("archived", False)),
        )
