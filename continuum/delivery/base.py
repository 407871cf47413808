"""
Delivery primitives — DeliveryRequest, DeliveryResult and the DeliveryTier ABC.

Every backend that can answer a prompt (relay, direct agent channel,
simulated responder) implements DeliveryTier. The DeliveryChain decides
which tiers are tried and in what order.

A tier signals failure by raising DeliveryError (usually
BackendUnavailable). It must never return error text dressed up as a reply.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from continuum.journal.entry import JournalOutcome


@dataclass(frozen=True)
class DeliveryRequest:
    """What to deliver, where, and with which context."""

    target: str
    prompt: str
    context: str = ""
    directive_id: str = ""


@dataclass(frozen=True)
class DeliveryResult:
    """
    Explicit success/failure of a delivery.

    archived is True only when the relay stored the exchange durably; a
    successful fallback delivery is never archived.
    """

    ok: bool
    tier: str
    text: str = ""
    error: str = ""
    archived: bool = False
    attempts: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(
        cls, tier: str, text: str, archived: bool = False, attempts: tuple[str, ...] = ()
    ) -> "DeliveryResult":
        return cls(ok=True, tier=tier, text=text, archived=archived, attempts=attempts)

    @classmethod
    def failure(cls, tier: str, error: str, attempts: tuple[str, ...] = ()) -> "DeliveryResult":
        return cls(ok=False, tier=tier, error=error, attempts=attempts)

    def to_outcome(self) -> JournalOutcome:
        if self.ok:
            return JournalOutcome.success(self.text, tier=self.tier, archived=self.archived)
        return JournalOutcome.failure(self.error, tier=self.tier)


class DeliveryTier(ABC):
    """Abstract agent backend."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, e.g. 'relay', 'direct', 'simulation'."""
        ...

    @property
    def archives(self) -> bool:
        """Whether a success from this tier implies durable storage."""
        return False

    @abstractmethod
    async def send(self, request: DeliveryRequest) -> str:
        """
        Deliver the prompt and return the agent's response text.

        Raises DeliveryError on any failure.
        """
        ...
