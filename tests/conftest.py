"""Shared test fixtures for Continuum."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from continuum.core.errors import BackendUnavailable
from continuum.delivery.base import DeliveryRequest, DeliveryTier

UTC = timezone.utc


def utc_ms(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> int:
    """Epoch milliseconds for a UTC wall-clock time."""
    return int(datetime(year, month, day, hour, minute, second, tzinfo=UTC).timestamp() * 1000)


# 2026-10-20 is a Tuesday (weekday index 2 with 0=Sunday)
TUESDAY_0900 = utc_ms(2026, 10, 20, 9, 0)


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, start: int) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeTier(DeliveryTier):
    """
    Controllable delivery tier.

    When a gate is given, send() blocks until the gate is set, which keeps
    a delivery in flight for as long as the test needs.
    """

    def __init__(
        self,
        name: str = "fake",
        *,
        reply: str = "ok",
        fail: bool = False,
        archives: bool = False,
        gate: asyncio.Event | None = None,
        crash: Exception | None = None,
    ) -> None:
        self._name = name
        self._reply = reply
        self._fail = fail
        self._archives = archives
        self._crash = crash
        self.gate = gate
        self.requests: list[DeliveryRequest] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def archives(self) -> bool:
        return self._archives

    async def send(self, request: DeliveryRequest) -> str:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self._crash is not None:
            raise self._crash
        if self._fail:
            raise BackendUnavailable(f"{self._name} down", tier=self._name, status_code=503)
        return self._reply


@pytest.fixture
def clock():
    """Fake clock parked at Tuesday 2026-10-20 09:00:00 UTC."""
    return FakeClock(TUESDAY_0900)


@pytest.fixture
def make_tier():
    """Factory for FakeTier instances."""
    return FakeTier
