"""Tests for continuum/delivery/chain.py and the simulated tier."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from continuum.core.clock import to_iso
from continuum.delivery.base import DeliveryResult
from continuum.delivery.chain import DeliveryChain
from continuum.delivery.simulated import SIMULATION_MARKER, SimulatedResponder
from continuum.journal.entry import JournalStatus
from continuum.memory import build_context
from continuum.scheduler.directive import SIMULATE_TARGET

TUESDAY_0900 = int(datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc).timestamp() * 1000)


# ── Fallback order ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestFallback:
    async def test_relay_success_is_archived(self, make_tier):
        relay = make_tier("relay", reply="archived reply", archives=True)
        direct = make_tier("direct")
        chain = DeliveryChain(relay=relay, direct=direct)

        result = await chain.deliver("chat-1", "hello")

        assert result.ok
        assert result.tier == "relay"
        assert result.archived is True
        assert result.text == "archived reply"
        assert direct.requests == []

    async def test_relay_down_falls_back_to_direct_with_context(self, make_tier):
        relay = make_tier("relay", fail=True, archives=True)
        direct = make_tier("direct", reply="direct reply")
        chain = DeliveryChain(relay=relay, direct=direct)
        context = build_context([("mood", "calm")], at=TUESDAY_0900)

        result = await chain.deliver("chat-1", "hello", context, directive_id="d1")

        assert result.ok
        assert result.tier == "direct"
        assert result.archived is False
        assert result.attempts == ("relay", "direct")
        sent = direct.requests[0]
        assert "[mood: calm]" in sent.context
        assert "Current Time:" in sent.context
        assert sent.directive_id == "d1"

    async def test_all_failing_reports_last_error(self, make_tier):
        relay = make_tier("relay", fail=True)
        direct = make_tier("direct", fail=True)
        chain = DeliveryChain(relay=relay, direct=direct, simulated=SimulatedResponder(delay=0))

        result = await chain.deliver("chat-1", "hello")

        assert not result.ok
        assert result.tier == "direct"
        assert "direct down" in result.error

    async def test_relay_down_without_direct_fails(self, make_tier):
        relay = make_tier("relay", fail=True)
        chain = DeliveryChain(relay=relay, simulated=SimulatedResponder(delay=0))

        result = await chain.deliver("chat-1", "hello")

        assert not result.ok
        assert result.tier == "relay"
        assert "relay down" in result.error

    async def test_direct_only(self, make_tier):
        chain = DeliveryChain(direct=make_tier("direct", reply="hi"))
        result = await chain.deliver("chat-1", "hello")
        assert result.ok and result.text == "hi" and not result.archived


# ── Simulation ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSimulation:
    async def test_simulate_target_skips_direct(self, make_tier):
        direct = make_tier("direct")
        chain = DeliveryChain(direct=direct, simulated=SimulatedResponder(delay=0))

        result = await chain.deliver(SIMULATE_TARGET, "hello")

        assert result.ok
        assert result.tier == "simulation"
        assert result.text.startswith(SIMULATION_MARKER)
        assert 'Prompt: "hello"' in result.text
        assert direct.requests == []

    async def test_no_backends_simulates(self):
        chain = DeliveryChain(simulated=SimulatedResponder(delay=0))
        result = await chain.deliver("chat-1", "hello")
        assert result.ok and result.tier == "simulation"
        assert result.archived is False

    async def test_relay_down_simulate_target_falls_to_simulation(self, make_tier):
        chain = DeliveryChain(relay=make_tier("relay", fail=True), simulated=SimulatedResponder(delay=0))
        result = await chain.deliver(SIMULATE_TARGET, "hello")
        assert result.ok and result.tier == "simulation"

    async def test_nothing_configured(self):
        result = await DeliveryChain().deliver("chat-1", "hello")
        assert not result.ok
        assert result.tier == "none"
        assert "No delivery backend" in result.error


def test_result_maps_to_journal_outcome():
    ok = DeliveryResult.success("relay", "text", archived=True).to_outcome()
    assert ok.status is JournalStatus.SUCCESS and ok.archived and ok.response == "text"
    bad = DeliveryResult.failure("direct", "nope").to_outcome()
    assert bad.status is JournalStatus.FAILED and bad.response == "nope" and not bad.archived


def test_tier_names(make_tier):
    chain = DeliveryChain(relay=make_tier("relay"), simulated=SimulatedResponder())
    assert chain.tier_names == ["relay", "simulation"]
    chain.use_direct(make_tier("direct"))
    assert chain.tier_names == ["relay", "direct", "simulation"]


def test_context_has_timestamp_and_memories():
    context = build_context([("project", "continuum"), ("mood", "calm")], at=TUESDAY_0900)
    assert context.splitlines() == [
        f"Current Time: {to_iso(TUESDAY_0900)}",
        "Available Memories: [project: continuum], [mood: calm]",
        "Instruction: Respond to the prompt.",
    ]
