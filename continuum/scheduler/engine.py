"""
SchedulerEngine — the background asyncio task that fires directives.

Design:
- One long-lived task ticks the evaluator against the live ScheduleStore
- Each due directive is claimed through the TriggerCoordinator; deliveries
  run as their own tasks so a slow backend never delays the next tick
- Sleep is adaptive: wake at the earliest next-eligible interval time,
  but never later than tick_interval, and never past the next minute
  boundary while specific-time directives are enabled
- Persistence is kicked off after each tick and never awaited here
- No missed-firing replay: a directive due while the host was down simply
  fires on the first tick after start
"""

from __future__ import annotations

import asyncio
import logging
from datetime import tzinfo
from typing import TYPE_CHECKING

from continuum.core.clock import Clock, ms_until_next_minute, now_ms
from continuum.core.errors import ContinuumError
from continuum.scheduler.coordinator import ClaimOutcome, TriggerCoordinator
from continuum.scheduler.directive import DirectiveMode
from continuum.scheduler.evaluator import DueSet, evaluate
from continuum.scheduler.store import ScheduleStore
from continuum.scheduler.triggers import DEBOUNCE_MS

if TYPE_CHECKING:
    from continuum.persistence.sync import PersistenceSync

logger = logging.getLogger(__name__)

TICK_INTERVAL = 1.0   # seconds, upper bound between due checks
MIN_SLEEP = 0.05


class SchedulerEngine:
    """
    Background scheduler loop.

    Usage:
        engine = SchedulerEngine(store, coordinator, persistence=sync)
        await engine.start()
        ...
        await engine.stop()
    """

    def __init__(
        self,
        store: ScheduleStore,
        coordinator: TriggerCoordinator,
        persistence: "PersistenceSync | None" = None,
        clock: Clock = now_ms,
        tick_interval: float = TICK_INTERVAL,
        min_sleep: float = MIN_SLEEP,
        debounce_ms: int = DEBOUNCE_MS,
        tz: tzinfo | None = None,
    ) -> None:
        self._store = store
        self._coordinator = coordinator
        self._persistence = persistence
        self._clock = clock
        self._tick_interval = tick_interval
        self._min_sleep = min_sleep
        self._debounce_ms = debounce_ms
        self._tz = tz
        self._task: asyncio.Task | None = None
        self._running = False
        self._next_wake_at: int | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def next_wake_at(self) -> int | None:
        """Earliest known next firing (epoch ms) from the last tick."""
        return self._next_wake_at

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="scheduler")
        logger.info("SchedulerEngine started")

    async def stop(self, drain: bool = True) -> None:
        """Stop ticking. In-flight deliveries are allowed to finish when drain=True."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        if drain:
            await self._coordinator.drain()
        logger.info("SchedulerEngine stopped")

    # ── Internal loop ─────────────────────────────────────────────────────────

    async def _loop(self) -> None:
        while self._running:
            try:
                self.tick()
            except Exception as e:
                logger.warning(f"Scheduler tick error (non-fatal): {e}", exc_info=True)
            await asyncio.sleep(self.sleep_seconds())

    def tick(self) -> DueSet:
        """
        Evaluate and claim everything due right now.

        Synchronous from evaluation through claiming, so the stamps written
        here are visible to the very next tick.
        """
        now = self._clock()
        # A claimed directive stays invisible until its delivery settles
        candidates = [
            d for d in self._store.all() if not self._coordinator.is_in_flight(d.id)
        ]
        due_set = evaluate(now, candidates, debounce_ms=self._debounce_ms, tz=self._tz)
        self._next_wake_at = due_set.next_wake_at

        for directive in due_set.due:
            try:
                claim = self._coordinator.claim_and_fire(directive.id)
            except ContinuumError as e:
                logger.warning(f"Could not claim directive {directive.id}: {e.message}")
                continue
            except Exception as e:
                logger.error(f"Claiming directive {directive.id} failed: {e}", exc_info=True)
                continue
            if claim.outcome is ClaimOutcome.ALREADY_IN_FLIGHT:
                logger.debug(f"Directive {directive.id} due but still in flight")

        if self._persistence is not None:
            self._persistence.schedule()
        return due_set

    def sleep_seconds(self) -> float:
        """How long to sleep before the next tick."""
        now = self._clock()
        sleep_ms = self._tick_interval * 1000
        if self._next_wake_at is not None:
            sleep_ms = min(sleep_ms, self._next_wake_at - now)
        if any(
            d.mode is DirectiveMode.SPECIFIC_TIME for d in self._store.all(enabled_only=True)
        ):
            sleep_ms = min(sleep_ms, ms_until_next_minute(now, self._tz))
        return max(self._min_sleep, sleep_ms / 1000)
