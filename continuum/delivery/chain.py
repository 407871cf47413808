"""
DeliveryChain — ordered fallback across agent backends.

Routing logic:

    1. Relay (if configured). Success is archived. Any failure falls through.
    2. Direct agent channel (if configured and the target is not the
       simulate sentinel). Success is NOT archived. Failure is terminal.
    3. Simulated responder when the target is the simulate sentinel, or
       when neither the relay nor the direct channel is configured.

This means:
- Relay up                         → relay answer, archived
- Relay down + direct configured   → direct answer, not archived
- Relay down + nothing else        → failed with the relay's error
- No relay, no direct              → simulated echo
- Nothing applies at all           → failed, no backend configured

The chain holds no backend logic and never raises for tier failures; it
always returns a DeliveryResult.
"""

from __future__ import annotations

import logging

from continuum.core.errors import DeliveryError, NoBackendConfigured
from continuum.delivery.base import DeliveryRequest, DeliveryResult, DeliveryTier
from continuum.scheduler.directive import is_simulated_target

logger = logging.getLogger(__name__)


class DeliveryChain:
    """
    Usage:
        chain = DeliveryChain(relay=RelayClient(...), direct=AgentChannel(...),
                              simulated=SimulatedResponder())
        result = await chain.deliver("chat-1", "Write today's entry", context,
                                     directive_id=directive.id)
    """

    def __init__(
        self,
        relay: DeliveryTier | None = None,
        direct: DeliveryTier | None = None,
        simulated: DeliveryTier | None = None,
    ) -> None:
        self._relay = relay
        self._direct = direct
        self._simulated = simulated

    def use_direct(self, direct: DeliveryTier | None) -> None:
        """Swap the direct agent tier after a settings change."""
        self._direct = direct

    @property
    def tier_names(self) -> list[str]:
        return [t.name for t in (self._relay, self._direct, self._simulated) if t is not None]

    async def deliver(
        self,
        target: str,
        prompt: str,
        context: str = "",
        *,
        directive_id: str = "",
    ) -> DeliveryResult:
        request = DeliveryRequest(
            target=target, prompt=prompt, context=context, directive_id=directive_id
        )
        attempts: list[str] = []
        last_failure: DeliveryResult | None = None
        simulate = is_simulated_target(target)

        # ── Step 1: Relay ─────────────────────────────────────────────────────
        if self._relay is not None:
            result = await self._attempt(self._relay, request, attempts)
            if result.ok:
                return result
            last_failure = result
            logger.warning(f"Relay delivery failed, falling back: {result.error}")

        # ── Step 2: Direct agent channel (terminal on failure) ───────────────
        if self._direct is not None and not simulate:
            return await self._attempt(self._direct, request, attempts)

        # ── Step 3: Simulation ───────────────────────────────────────────────
        if self._simulated is not None and (
            simulate or (self._relay is None and self._direct is None)
        ):
            return await self._attempt(self._simulated, request, attempts)

        if last_failure is not None:
            return last_failure

        error = NoBackendConfigured(f"No delivery backend configured for target {target!r}")
        logger.warning(error.message)
        return DeliveryResult.failure("none", error.message, attempts=tuple(attempts))

    async def _attempt(
        self, tier: DeliveryTier, request: DeliveryRequest, attempts: list[str]
    ) -> DeliveryResult:
        attempts.append(tier.name)
        try:
            text = await tier.send(request)
        except DeliveryError as e:
            return DeliveryResult.failure(tier.name, e.message, attempts=tuple(attempts))
        logger.debug(f"Delivered via {tier.name} (directive={request.directive_id or '-'})")
        return DeliveryResult.success(
            tier.name, text, archived=tier.archives, attempts=tuple(attempts)
        )
