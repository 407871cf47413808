"""
TriggerCoordinator — claims due directives and runs their deliveries.

The only component that touches both the ScheduleStore and the
JournalLedger. A claim is synchronous (no await between the in-flight
check and the stamp), so two claims on the same directive, from the same
tick, a later tick or a manual "fire now", can never both succeed.

Claim sequence:
    1. directive must exist and be enabled
    2. not already in flight            → otherwise ALREADY_IN_FLIGHT (no-op)
    3. mark in flight, stamp last_fired_at, create PENDING entry
    4. start delivery as a task and return the entry id immediately

Completion (always, even if the chain blows up):
    transition entry → SUCCESS / FAILED, then release the in-flight flag.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from continuum.core.clock import Clock, now_ms
from continuum.core.errors import DirectiveDisabledError
from continuum.delivery.base import DeliveryResult
from continuum.delivery.chain import DeliveryChain
from continuum.journal.entry import JournalOutcome, JournalStatus
from continuum.journal.ledger import JournalLedger
from continuum.memory import build_context
from continuum.scheduler.directive import Directive
from continuum.scheduler.store import ScheduleStore

logger = logging.getLogger(__name__)

ContextProvider = Callable[[int], str]


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"
    ALREADY_IN_FLIGHT = "already_in_flight"


@dataclass(frozen=True)
class Claim:
    outcome: ClaimOutcome
    directive_id: str
    entry_id: str | None = None

    @property
    def claimed(self) -> bool:
        return self.outcome is ClaimOutcome.CLAIMED


class TriggerCoordinator:
    """
    Usage:
        coordinator = TriggerCoordinator(store, ledger, chain)
        claim = coordinator.claim_and_fire(directive.id)
        if claim.claimed:
            print("pending entry", claim.entry_id)
        await coordinator.drain()   # wait for outstanding deliveries
    """

    def __init__(
        self,
        store: ScheduleStore,
        ledger: JournalLedger,
        chain: DeliveryChain,
        context_provider: ContextProvider | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._chain = chain
        self._context_provider = context_provider or (lambda at: build_context([], at))
        self._clock = clock
        self._in_flight: set[str] = set()
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    def is_in_flight(self, directive_id: str) -> bool:
        return directive_id in self._in_flight

    # ── Claims ───────────────────────────────────────────────────────────────

    def claim_and_fire(self, directive_id: str) -> Claim:
        """
        Claim a directive and start its delivery without waiting for it.

        Must be called from inside a running event loop.
        Raises DirectiveNotFoundError / DirectiveDisabledError when the
        preconditions fail.
        """
        loop = asyncio.get_running_loop()  # fail before mutating anything
        directive = self._store.get(directive_id)
        if not directive.enabled:
            raise DirectiveDisabledError(
                f"Directive {directive.name or directive_id!r} is disabled",
                directive_id=directive_id,
            )
        if directive_id in self._in_flight:
            logger.debug(f"Directive {directive.name or directive_id!r} still in flight, skipping")
            return Claim(ClaimOutcome.ALREADY_IN_FLIGHT, directive_id)

        now = self._clock()
        self._in_flight.add(directive_id)
        try:
            self._store.record_fired(directive_id, now)
            entry = self._ledger.create_pending(directive_id, directive.prompt, now)
            snapshot = dataclasses.replace(directive)
            task = loop.create_task(
                self._deliver(snapshot, entry.id), name=f"directive:{directive_id}"
            )
        except BaseException:
            self._in_flight.discard(directive_id)
            raise

        self._tasks[entry.id] = task
        task.add_done_callback(lambda _t, key=entry.id: self._tasks.pop(key, None))
        logger.info(f"Firing directive {directive.name or directive_id!r} (entry={entry.id})")
        return Claim(ClaimOutcome.CLAIMED, directive_id, entry.id)

    def fire_now(self, directive_id: str) -> Claim:
        """Manual trigger: skips the due check, keeps the in-flight guard."""
        return self.claim_and_fire(directive_id)

    async def drain(self) -> None:
        """Wait for every outstanding delivery to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    # ── Completion ───────────────────────────────────────────────────────────

    async def _deliver(self, directive: Directive, entry_id: str) -> None:
        try:
            try:
                context = self._context_provider(self._clock())
                result = await self._chain.deliver(
                    directive.target,
                    directive.prompt,
                    context,
                    directive_id=directive.id,
                )
            except asyncio.CancelledError:
                self._settle(directive, entry_id, JournalOutcome.failure("Delivery cancelled"))
                raise
            except Exception as e:
                logger.error(
                    f"Delivery for directive {directive.id} crashed: {e}", exc_info=True
                )
                result = DeliveryResult.failure("chain", f"Delivery crashed: {e}")
            self._settle(directive, entry_id, result.to_outcome())
        finally:
            self._in_flight.discard(directive.id)

    def _settle(self, directive: Directive, entry_id: str, outcome: JournalOutcome) -> None:
        self._ledger.transition(entry_id, outcome)
        label = directive.name or directive.id
        if outcome.status is JournalStatus.SUCCESS:
            source = "archived" if outcome.archived else "not archived"
            logger.info(f"Directive {label!r} delivered via {outcome.tier} ({source})")
        else:
            logger.warning(f"Directive {label!r} failed via {outcome.tier or '-'}: {outcome.response}")
