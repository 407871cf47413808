"""
AgentChannel — direct delivery to an OpenWebUI-style chat API.

Used when no relay is configured, or as the fallback when the relay is
down. Nothing is archived on this path.

    GET  /api/v1/chats                      → [{id, title}, ...]  (or {"chats": [...]})
    POST /api/v1/chats/{chat_id}/messages   → {"content": "..."}

The prompt is sent with the synthesized context prepended:

    [SYSTEM CONTEXT: <context>]

    <prompt>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from continuum.core.errors import BackendUnavailable
from continuum.delivery.base import DeliveryRequest, DeliveryTier

logger = logging.getLogger(__name__)

TIER_NAME = "direct"
NO_CONTENT_REPLY = "Message sent to agent. (Check the agent UI for the response)"


@dataclass(frozen=True)
class ChatTarget:
    """A conversation the agent can be addressed in."""

    id: str
    title: str


class AgentChannel(DeliveryTier):
    """
    Direct agent chat client.

    Usage:
        agent = AgentChannel("https://my-openwebui.example", api_key="sk-...")
        targets = await agent.list_targets()
        reply = await agent.post_message("chat-1", "Hello", context="...")
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
    def base_url(self) -> str:
        return self._base_url

    async def send(self, request: DeliveryRequest) -> str:
        return await self.post_message(request.target, request.prompt, request.context)

    async def list_targets(self) -> list[ChatTarget]:
        """
        Available chats, sorted by title.

        Listing is advisory (it feeds pickers), so failures return [].
        """
        client = await self._get_client()
        try:
            response = await client.get("/api/v1/chats", headers=self._headers())
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to list agent chats: {e}")
            return []

        if isinstance(data, list):
            chats = data
        elif isinstance(data, dict) and isinstance(data.get("chats"), list):
            chats = data["chats"]
        else:
            logger.warning(f"Unexpected agent chat listing: {type(data).__name__}")
            return []
        targets = [
            ChatTarget(id=str(c["id"]), title=c.get("title") or c.get("name") or "Untitled Chat")
            for c in chats
            if isinstance(c, dict) and "id" in c
        ]
        return sorted(targets, key=lambda t: t.title)

    async def post_message(self, target: str, prompt: str, context: str = "") -> str:
        full_prompt = f"[SYSTEM CONTEXT: {context}]\n\n{prompt}" if context else prompt
        client = await self._get_client()
        path = f"/api/v1/chats/{quote(target, safe='')}/messages"
        try:
            response = await client.post(
                path,
                headers=self._headers(),
                json={"messages": [{"role": "user", "content": full_prompt}]},
            )
        except httpx.HTTPError as e:
            raise BackendUnavailable(
                f"Could not connect to agent at {self._base_url}: {e}", tier=TIER_NAME
            ) from e

        if not response.is_success:
            raise BackendUnavailable(
                f"Agent error: {response.status_code} {response.reason_phrase}".strip(),
                tier=TIER_NAME,
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("content"):
            return str(data["content"])
        return NO_CONTENT_REPLY

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ── Internal ─────────────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=10.0),
            )
        return self._client
