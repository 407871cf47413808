"""
Continuum runtime — the object a host process holds.

Wires the record store, persistence strategy, schedule store, journal,
memory stubs, delivery chain, trigger coordinator and scheduler engine
together from one ContinuumConfig. All intelligence lives in those parts;
this module only composes them and exposes the operator-facing actions.

Usage:
    app = await Continuum.create(ContinuumConfig.load())
    await app.start()

    directive = await app.add_directive(
        Directive.at("09:00", [1, 2, 3, 4, 5], "Write today's journal entry", "chat-1")
    )
    claim = await app.fire_now(directive.id)
    ...
    await app.stop()
"""

from __future__ import annotations

import logging
from datetime import tzinfo

from continuum.core.clock import Clock, now_ms, to_iso
from continuum.core.config import ContinuumConfig
from continuum.core.errors import ContinuumError
from continuum.delivery.agent import AgentChannel, ChatTarget
from continuum.delivery.chain import DeliveryChain
from continuum.delivery.relay import RelayClient
from continuum.delivery.simulated import SimulatedResponder
from continuum.journal.ledger import JournalLedger, JournalPage
from continuum.memory import MemoryBook, MemoryStub, build_context
from continuum.persistence.backends import LocalPersistence, Settings, select_persistence
from continuum.persistence.sync import PersistenceSync
from continuum.scheduler.coordinator import Claim, TriggerCoordinator
from continuum.scheduler.directive import Directive
from continuum.scheduler.engine import SchedulerEngine
from continuum.scheduler.store import ScheduleStore
from continuum.store.base import RecordStore
from continuum.store.sqlite import SQLiteRecordStore

logger = logging.getLogger(__name__)

INTERRUPTED_CAUSE = "Interrupted before delivery settled"


class Continuum:
    """Composed scheduling and dispatch core."""

    def __init__(
        self,
        config: ContinuumConfig,
        records: RecordStore,
        store: ScheduleStore,
        ledger: JournalLedger,
        memories: MemoryBook,
        settings: Settings,
        chain: DeliveryChain,
        coordinator: TriggerCoordinator,
        engine: SchedulerEngine,
        sync: PersistenceSync,
        relay: RelayClient | None = None,
        agent: AgentChannel | None = None,
        owns_records: bool = False,
    ) -> None:
        self.config = config
        self.store = store
        self.ledger = ledger
        self.memories = memories
        self.coordinator = coordinator
        self.engine = engine
        self._records = records
        self._settings = settings
        self._chain = chain
        self._sync = sync
        self._relay = relay
        self._agent = agent
        self._owns_records = owns_records
        self._retired: list[AgentChannel] = []

    @classmethod
    async def create(
        cls,
        config: ContinuumConfig | None = None,
        records: RecordStore | None = None,
        relay: RelayClient | None = None,
        agent: AgentChannel | None = None,
        clock: Clock = now_ms,
        tz: tzinfo | None = None,
    ) -> "Continuum":
        """Load persisted state and build every component."""
        config = config or ContinuumConfig.load()

        owns_records = records is None
        if records is None:
            sqlite_records = SQLiteRecordStore(config.get_db_path())
            await sqlite_records.initialize()
            records = sqlite_records

        local = LocalPersistence(records)
        if relay is None and config.relay.configured:
            relay = RelayClient(config.relay.url, config.relay.api_key, timeout=config.relay.timeout)
        persistence = select_persistence(config, local, relay)

        state = await persistence.load()
        logger.info(f"Loaded {len(state.directives)} directive(s) from {state.source}")
        store = ScheduleStore(state.directives)
        ledger = JournalLedger(await local.load_journal())
        memories = MemoryBook(await local.load_memories())

        settings = state.settings
        if agent is None:
            agent = _agent_from(settings, config)
        simulated = (
            SimulatedResponder(delay=config.simulation.delay)
            if config.simulation.enabled
            else None
        )
        chain = DeliveryChain(relay=relay, direct=agent, simulated=simulated)

        coordinator = TriggerCoordinator(
            store,
            ledger,
            chain,
            context_provider=lambda at: build_context(memories.pairs(), at),
            clock=clock,
        )
        sync = PersistenceSync(
            persistence,
            local,
            store,
            ledger,
            memories,
            journal_limit=config.storage.journal_limit,
        )
        engine = SchedulerEngine(
            store,
            coordinator,
            persistence=sync,
            clock=clock,
            tick_interval=config.scheduler.tick_interval,
            min_sleep=config.scheduler.min_sleep,
            debounce_ms=config.scheduler.debounce_seconds * 1000,
            tz=tz,
        )
        interrupted = ledger.interrupt_pending(INTERRUPTED_CAUSE)
        if interrupted:
            logger.warning(f"Failed {len(interrupted)} journal entry(s) left pending by a previous run")
            sync.schedule()
        logger.debug(f"Delivery tiers: {chain.tier_names}")
        return cls(
            config=config,
            records=records,
            store=store,
            ledger=ledger,
            memories=memories,
            settings=settings,
            chain=chain,
            coordinator=coordinator,
            engine=engine,
            sync=sync,
            relay=relay,
            agent=agent,
            owns_records=owns_records,
        )

    # ━━━ Lifecycle ━━━

    async def start(self) -> None:
        if self.config.scheduler.enabled:
            await self.engine.start()

    async def stop(self) -> None:
        """Stop ticking, let deliveries settle, save, and release resources."""
        await self.engine.stop(drain=True)
        await self.flush()
        for client in (self._relay, self._agent, *self._retired):
            if client is not None:
                await client.close()
        if self._owns_records:
            await self._records.close()

    async def flush(self) -> None:
        """Save all dirty state now. Failures are logged, not raised."""
        if not await self._sync.flush():
            logger.warning("Flush incomplete; unsaved changes will be retried")

    @property
    def next_wake_at(self) -> int | None:
        return self.engine.next_wake_at

    @property
    def settings(self) -> Settings:
        return self._settings

    # ━━━ Directives ━━━

    async def add_directive(self, directive: Directive) -> Directive:
        self.store.add(directive)
        self._sync.schedule()
        return directive

    async def update_directive(self, directive_id: str, **changes) -> Directive:
        directive = self.store.update(directive_id, **changes)
        self._sync.schedule()
        return directive

    async def remove_directive(self, directive_id: str) -> bool:
        removed = self.store.remove(directive_id)
        self._sync.schedule()
        return removed

    async def toggle_directive(self, directive_id: str) -> Directive:
        directive = self.store.toggle(directive_id)
        self._sync.schedule()
        return directive

    async def fire_now(self, directive_id: str) -> Claim:
        """Manual trigger through the same claim path as scheduled firing."""
        claim = self.coordinator.fire_now(directive_id)
        self._sync.schedule()
        return claim

    # ━━━ Memory stubs ━━━

    async def add_memory(self, key: str, value: str, importance: int = 50) -> MemoryStub:
        stub = self.memories.add(key, value, importance)
        self._sync.schedule()
        return stub

    async def remove_memory(self, stub_id: str) -> bool:
        removed = self.memories.remove(stub_id)
        self._sync.schedule()
        return removed

    # ━━━ Settings & targets ━━━

    async def update_settings(self, settings: Settings) -> None:
        """Swap the direct agent endpoint and persist the new settings."""
        if self._agent is not None:
            self._retired.append(self._agent)  # may still serve in-flight deliveries
        self._agent = _agent_from(settings, self.config)
        self._chain.use_direct(self._agent)
        self._settings = settings
        self._sync.mark_settings(settings)
        self._sync.schedule()

    async def list_targets(self) -> list[ChatTarget]:
        if self._agent is None:
            return []
        return await self._agent.list_targets()

    # ━━━ Journal read path ━━━

    async def browse_journal(
        self,
        directive_id: str | None = None,
        since: int | None = None,
        until: int | None = None,
        thread_id: str | None = None,
        model_id: str | None = None,
        limit: int = 50,
        skip: int = 0,
    ) -> JournalPage:
        """
        Page through journal history.

        Served by the relay archive when one is configured; destination
        (thread_id) and model filters only apply there. Falls back to the
        local ledger if the relay cannot be reached.
        """
        if self._relay is not None:
            try:
                return await self._relay.journal_entries(
                    schedule_id=directive_id,
                    thread_id=thread_id,
                    model_id=model_id,
                    from_date=to_iso(since) if since is not None else None,
                    to_date=to_iso(until) if until is not None else None,
                    limit=limit,
                    skip=skip,
                )
            except ContinuumError as e:
                logger.warning(f"Relay journal unavailable, showing local journal: {e.message}")
        return self.ledger.page(
            limit=limit, skip=skip, directive_id=directive_id, since=since, until=until
        )


def _agent_from(settings: Settings, config: ContinuumConfig) -> AgentChannel | None:
    """Persisted settings win over the static config for the agent endpoint."""
    if settings.agent_base_url:
        return AgentChannel(
            settings.agent_base_url, settings.agent_api_key, timeout=config.agent.timeout
        )
    if config.agent.configured:
        return AgentChannel(config.agent.base_url, config.agent.api_key, timeout=config.agent.timeout)
    return None
