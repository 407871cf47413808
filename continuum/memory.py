"""
Memory stubs — small static key/value context blocks.

Every delivery through the direct agent channel carries a context string
built from the current time and the flattened memory pairs.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from continuum.core.clock import now_ms, to_iso


@dataclass
class MemoryStub:
    """A single named context block."""

    key: str
    value: str
    importance: int = 50  # 0-100
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    last_accessed: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "importance": self.importance,
            "lastAccessed": self.last_accessed,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "MemoryStub":
        return cls(
            id=d["id"],
            key=d["key"],
            value=d.get("value", ""),
            importance=int(d.get("importance", 50)),
            last_accessed=int(d.get("lastAccessed") or 0),
        )


class MemoryBook:
    """Ordered collection of memory stubs."""

    def __init__(self, stubs: list[MemoryStub] | None = None) -> None:
        self._stubs: list[MemoryStub] = list(stubs or [])
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def add(self, key: str, value: str, importance: int = 50) -> MemoryStub:
        stub = MemoryStub(key=key, value=value, importance=importance)
        self._stubs.append(stub)
        self._version += 1
        return stub

    def remove(self, stub_id: str) -> bool:
        before = len(self._stubs)
        self._stubs = [s for s in self._stubs if s.id != stub_id]
        if len(self._stubs) == before:
            return False
        self._version += 1
        return True

    def replace_all(self, stubs: list[MemoryStub]) -> None:
        self._stubs = list(stubs)
        self._version += 1

    def all(self) -> list[MemoryStub]:
        return list(self._stubs)

    def pairs(self) -> list[tuple[str, str]]:
        return [(s.key, s.value) for s in self._stubs]


def build_context(memories: list[tuple[str, str]], at: int | None = None) -> str:
    """
    Synthesize the context string sent alongside a prompt.

        Current Time: 2026-10-20T09:00:00.000+02:00
        Available Memories: [mood: calm], [project: continuum]
        Instruction: Respond to the prompt.
    """
    stamp = to_iso(at if at is not None else now_ms())
    flattened = ", ".join(f"[{key}: {value}]" for key, value in memories)
    return (
        f"Current Time: {stamp}\n"
        f"Available Memories: {flattened}\n"
        "Instruction: Respond to the prompt."
    )
