"""
SimulatedResponder — the last-resort tier that never leaves the process.

Echoes the prompt with a simulation marker after a short synthetic delay.
Always succeeds, so a directive aimed at the "simulation" target (or a
setup with no backends at all) still produces a journal entry.
"""

from __future__ import annotations

import asyncio

from continuum.delivery.base import DeliveryRequest, DeliveryTier

TIER_NAME = "simulation"
SIMULATION_MARKER = "[SIMULATION MODE]"


class SimulatedResponder(DeliveryTier):
    def __init__(self, delay: float = 1.5) -> None:
        self._delay = delay

    @property
    def name(self) -> str:
        return TIER_NAME

    async def send(self, request: DeliveryRequest) -> str:
        if self._delay > 0:
            await asyncio.sleep(self._delay)
        return (
            f"{SIMULATION_MARKER}\n"
            "No agent backend answered this directive.\n\n"
            f'Prompt: "{request.prompt}"'
        )
