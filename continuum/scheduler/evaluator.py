"""
Due-set evaluation — which directives fire on this tick, and when to wake next.

evaluate() is a pure function of (now, directives). It never mutates a
directive and never performs I/O, so it is safe to call from inside a tick
and trivially testable with fixed timestamps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Iterable

from continuum.core.errors import ParseError
from continuum.scheduler.directive import Directive
from continuum.scheduler.triggers import DEBOUNCE_MS, Verdict, make_trigger

logger = logging.getLogger(__name__)


@dataclass
class DueSet:
    """Result of one evaluation pass."""

    due: list[Directive] = field(default_factory=list)    # insertion order
    verdicts: dict[str, Verdict] = field(default_factory=dict)
    next_wake_at: int | None = None                       # None = no pending work

    @property
    def due_ids(self) -> list[str]:
        return [d.id for d in self.due]


def evaluate(
    now: int,
    directives: Iterable[Directive],
    *,
    debounce_ms: int = DEBOUNCE_MS,
    tz: tzinfo | None = None,
) -> DueSet:
    """
    Compute the due set at epoch-ms *now*.

    Disabled directives get no verdict. Directives whose schedule text is
    malformed get an INVALID verdict and are never due. next_wake_at is the
    earliest next_eligible_at among NOT_DUE_YET verdicts.
    """
    result = DueSet()
    for directive in directives:
        if not directive.enabled:
            continue
        verdict = verdict_for(directive, now, debounce_ms=debounce_ms, tz=tz)
        result.verdicts[directive.id] = verdict
        if verdict.due:
            result.due.append(directive)
        elif verdict.next_eligible_at is not None:
            if result.next_wake_at is None or verdict.next_eligible_at < result.next_wake_at:
                result.next_wake_at = verdict.next_eligible_at
    return result


def verdict_for(
    directive: Directive,
    now: int,
    *,
    debounce_ms: int = DEBOUNCE_MS,
    tz: tzinfo | None = None,
) -> Verdict:
    """Verdict for a single directive, isolating parse failures."""
    try:
        trigger = make_trigger(directive, debounce_ms=debounce_ms, tz=tz)
    except ParseError as e:
        logger.debug(f"Directive {directive.id} never due: {e.message}")
        return Verdict.invalid(e.message)
    return trigger.verdict(last_fired_at=directive.last_fired_at, now=now)
