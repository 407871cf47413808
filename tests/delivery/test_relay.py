"""Tests for continuum/delivery/relay.py"""
from __future__ import annotations

import json

import httpx
import pytest

from continuum.core.errors import BackendUnavailable
from continuum.delivery.base import DeliveryRequest
from continuum.delivery.relay import RelayClient, archive_entry_to_journal
from continuum.journal.entry import JournalStatus

BASE = "http://relay.test"


def _relay(handler, api_key: str = "secret") -> RelayClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE)
    return RelayClient(BASE, api_key=api_key, client=client)


# ── Trigger ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestTrigger:
    async def test_trigger_posts_and_returns_response(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            seen["key"] = request.headers.get("X-API-Key")
            return httpx.Response(
                200, json={"entry_id": "e1", "response": "Hello!", "model_id": "llama3"}
            )

        relay = _relay(handler)
        receipt = await relay.trigger("chat-1", "Say hi", "d1")

        assert receipt.response == "Hello!"
        assert receipt.entry_id == "e1"
        assert receipt.model_id == "llama3"
        assert seen["path"] == "/continuum/journal/trigger"
        assert seen["body"] == {"thread_id": "chat-1", "prompt": "Say hi", "schedule_id": "d1"}
        assert seen["auth"] == "Bearer secret"
        assert seen["key"] == "secret"
        await relay.close()

    async def test_send_is_archiving_tier(self):
        relay = _relay(lambda r: httpx.Response(200, json={"response": "ok"}))
        assert relay.archives is True
        assert relay.name == "relay"
        assert await relay.send(DeliveryRequest(target="chat-1", prompt="p")) == "ok"
        await relay.close()

    async def test_non_2xx_raises_backend_unavailable(self):
        relay = _relay(lambda r: httpx.Response(503, text="maintenance"))
        with pytest.raises(BackendUnavailable) as info:
            await relay.trigger("chat-1", "p", "d1")
        assert info.value.status_code == 503
        assert info.value.tier == "relay"
        assert "maintenance" in info.value.message
        await relay.close()

    async def test_client_error_also_unavailable(self):
        relay = _relay(lambda r: httpx.Response(404, json={"detail": "nope"}))
        with pytest.raises(BackendUnavailable):
            await relay.trigger("chat-1", "p", "d1")
        await relay.close()

    async def test_network_error_raises_backend_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        relay = _relay(handler)
        with pytest.raises(BackendUnavailable) as info:
            await relay.trigger("chat-1", "p", "d1")
        assert info.value.status_code is None
        await relay.close()

    async def test_missing_response_field_raises(self):
        relay = _relay(lambda r: httpx.Response(200, json={"entry_id": "e1"}))
        with pytest.raises(BackendUnavailable):
            await relay.trigger("chat-1", "p", "d1")
        await relay.close()

    async def test_no_api_key_no_auth_headers(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json={"response": "ok"})

        relay = _relay(handler, api_key="")
        await relay.trigger("chat-1", "p", "d1")
        assert "authorization" not in seen
        assert "x-api-key" not in seen
        await relay.close()


# ── Archive & remote persistence ─────────────────────────────────────────────

@pytest.mark.asyncio
class TestArchive:
    async def test_journal_entries_maps_records(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={
                "entries": [{
                    "id": "a1",
                    "created_at": "2026-10-20T09:00:00Z",
                    "user_message": "Write the entry",
                    "ai_response": "Dear diary",
                    "metadata": {"schedule_id": "d1"},
                }],
                "has_more": True,
            })

        relay = _relay(handler)
        page = await relay.journal_entries(schedule_id="d1", thread_id="chat-1", limit=10, skip=0)

        assert seen["params"] == {"schedule_id": "d1", "thread_id": "chat-1", "limit": "10", "skip": "0"}
        assert page.has_more is True
        entry = page.entries[0]
        assert entry.directive_id == "d1"
        assert entry.response == "Dear diary"
        assert entry.archived is True
        assert entry.status is JournalStatus.SUCCESS
        await relay.close()

    async def test_schedules_round_trip(self):
        stored = {}

        def handler(request):
            if request.method == "PUT":
                stored["schedules"] = json.loads(request.content)
                return httpx.Response(204)
            return httpx.Response(200, json=stored.get("schedules", []))

        relay = _relay(handler)
        await relay.save_schedules([{"id": "d1"}])
        assert await relay.get_schedules() == [{"id": "d1"}]
        await relay.close()

    async def test_settings_non_dict_reads_as_empty(self):
        relay = _relay(lambda r: httpx.Response(200, json=None))
        assert await relay.get_settings() == {}
        await relay.close()


def test_archive_entry_without_metadata_uses_entry_id():
    entry = archive_entry_to_journal({"id": "a9", "created_at": 1_760_000_000_000})
    assert entry.directive_id == "a9"
    assert entry.created_at == 1_760_000_000_000
    assert entry.tier == "relay"


@pytest.mark.asyncio
async def test_unreadable_archive_records_are_skipped():
    good = {"id": "a1", "created_at": "2026-10-20T09:00:00Z", "ai_response": "fine"}
    body = {
        "entries": [
            {"user_message": "no id"},
            {"id": "a2", "created_at": "yesterday-ish"},
            "junk",
            {"id": "a3", "metadata": "not an object"},
            good,
        ],
    }
    relay = _relay(lambda r: httpx.Response(200, json=body))

    page = await relay.journal_entries()

    assert [e.id for e in page.entries] == ["a3", "a1"]
    assert page.entries[0].directive_id == "a3"
    await relay.close()
