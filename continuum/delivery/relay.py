"""
RelayClient — the primary delivery tier and remote archive.

The relay forwards a prompt to the agent, captures the reply and stores
the exchange durably, so a relay success is the only "archived" outcome.
It also serves the journal archive read path and, when configured, holds
the directive list and settings.

Endpoints (all relative to the relay base URL):
    POST /continuum/journal/trigger     {thread_id, prompt, schedule_id}
    GET  /continuum/journal/entries     ?schedule_id&thread_id&model_id&from_date&to_date&limit&skip
    GET  /continuum/schedules           PUT /continuum/schedules
    GET  /continuum/settings            PUT /continuum/settings

Any non-2xx status or network error raises BackendUnavailable; the caller
never needs to distinguish 4xx from 5xx.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from continuum.core.clock import now_ms
from continuum.core.errors import BackendUnavailable
from continuum.delivery.base import DeliveryRequest, DeliveryTier
from continuum.journal.entry import JournalEntry, JournalStatus
from continuum.journal.ledger import JournalPage

logger = logging.getLogger(__name__)

TIER_NAME = "relay"


@dataclass(frozen=True)
class RelayReceipt:
    """Relay reply to a trigger."""

    entry_id: str
    response: str
    timestamp: str = ""
    model_id: str | None = None


class RelayClient(DeliveryTier):
    """
    HTTP client for the relay.

    Usage:
        relay = RelayClient("http://localhost:8100", api_key="secret")
        receipt = await relay.trigger("chat-1", "Write today's entry", "directive-id")
        page = await relay.journal_entries(schedule_id="directive-id", limit=20)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.strip().rstrip("/")
        self._api_key = api_key.strip()
        self._timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return TIER_NAME

    @property
    def archives(self) -> bool:
        return True

    @property
    def base_url(self) -> str:
        return self._base_url

    # ── Delivery ─────────────────────────────────────────────────────────────

    async def send(self, request: DeliveryRequest) -> str:
        receipt = await self.trigger(request.target, request.prompt, request.directive_id)
        return receipt.response

    async def trigger(self, target: str, prompt: str, schedule_id: str) -> RelayReceipt:
        data = await self._request(
            "POST",
            "/continuum/journal/trigger",
            json={"thread_id": target, "prompt": prompt, "schedule_id": schedule_id},
        )
        if not isinstance(data, dict) or "response" not in data:
            raise BackendUnavailable("Relay trigger returned no response", tier=TIER_NAME)
        return RelayReceipt(
            entry_id=str(data.get("entry_id", "")),
            response=str(data["response"]),
            timestamp=str(data.get("timestamp", "")),
            model_id=data.get("model_id"),
        )

    # ── Archive read path ────────────────────────────────────────────────────

    async def journal_entries(
        self,
        schedule_id: str | None = None,
        thread_id: str | None = None,
        model_id: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
        limit: int | None = None,
        skip: int | None = None,
    ) -> JournalPage:
        params = {
            key: value
            for key, value in {
                "schedule_id": schedule_id,
                "thread_id": thread_id,
                "model_id": model_id,
                "from_date": from_date,
                "to_date": to_date,
                "limit": limit,
                "skip": skip,
            }.items()
            if value is not None and value != ""
        }
        data = await self._request("GET", "/continuum/journal/entries", params=params)
        raw_entries = data.get("entries", []) if isinstance(data, dict) else []
        entries: list[JournalEntry] = []
        for raw in raw_entries if isinstance(raw_entries, list) else []:
            try:
                entries.append(archive_entry_to_journal(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable archive record: {e!r}")
        return JournalPage(
            entries=entries,
            has_more=bool(data.get("has_more", False)) if isinstance(data, dict) else False,
        )

    # ── Remote persistence ───────────────────────────────────────────────────

    async def get_schedules(self) -> list[dict]:
        data = await self._request("GET", "/continuum/schedules")
        return data if isinstance(data, list) else []

    async def save_schedules(self, schedules: list[dict]) -> None:
        await self._request("PUT", "/continuum/schedules", json=schedules)

    async def get_settings(self) -> dict:
        data = await self._request("GET", "/continuum/settings")
        return data if isinstance(data, dict) else {}

    async def save_settings(self, settings: dict) -> None:
        await self._request("PUT", "/continuum/settings", json=settings)

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ── Internal ─────────────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
            headers["X-API-Key"] = self._api_key
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=10.0),
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise BackendUnavailable(
                f"Relay unreachable at {self._base_url}: {e}", tier=TIER_NAME
            ) from e

        if not response.is_success:
            raise BackendUnavailable(
                f"Relay {method} {path} failed: {response.status_code} {response.text}".strip(),
                tier=TIER_NAME,
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendUnavailable(
                f"Relay {method} {path} returned invalid JSON", tier=TIER_NAME
            ) from e


def archive_entry_to_journal(entry: dict) -> JournalEntry:
    """
    Map a relay archive record onto a JournalEntry (always an archived success).

    Raises KeyError, TypeError or ValueError for records that cannot be read.
    """
    if not isinstance(entry, dict):
        raise TypeError(f"archive record is not an object: {entry!r}")
    created = entry.get("created_at")
    if isinstance(created, str) and created:
        created_at = int(datetime.fromisoformat(created.replace("Z", "+00:00")).timestamp() * 1000)
    elif isinstance(created, (int, float)):
        created_at = int(created)
    else:
        created_at = now_ms()
    metadata = entry.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    return JournalEntry(
        id=str(entry["id"]),
        created_at=created_at,
        directive_id=str(metadata.get("schedule_id") or entry["id"]),
        prompt=entry.get("user_message") or "",
        response=entry.get("ai_response") or "",
        status=JournalStatus.SUCCESS,
        tier=TIER_NAME,
        archived=True,
    )
