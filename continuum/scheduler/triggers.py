"""
Trigger implementations — decide whether a directive is due right now.

Usage:
    trigger = make_trigger(directive)
    verdict = trigger.verdict(last_fired_at=directive.last_fired_at, now=now_ms())
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum

from continuum.core.clock import MS_PER_MINUTE, sunday_weekday, to_datetime
from continuum.core.errors import ParseError
from continuum.scheduler.directive import (
    Directive,
    DirectiveMode,
    parse_interval,
    parse_time_of_day,
)

DEBOUNCE_MS = MS_PER_MINUTE


class VerdictKind(str, Enum):
    DUE = "due"
    NOT_DUE_YET = "not_due_yet"
    INVALID = "invalid"


@dataclass(frozen=True)
class Verdict:
    """
    Outcome of checking one directive at one instant.

    next_eligible_at is only set for NOT_DUE_YET verdicts whose next firing
    can be computed exactly (interval mode).
    """

    kind: VerdictKind
    next_eligible_at: int | None = None
    reason: str = ""

    @property
    def due(self) -> bool:
        return self.kind is VerdictKind.DUE

    @classmethod
    def fire(cls) -> "Verdict":
        return cls(VerdictKind.DUE)

    @classmethod
    def wait(cls, next_eligible_at: int | None = None) -> "Verdict":
        return cls(VerdictKind.NOT_DUE_YET, next_eligible_at=next_eligible_at)

    @classmethod
    def invalid(cls, reason: str) -> "Verdict":
        return cls(VerdictKind.INVALID, reason=reason)


class Trigger(ABC):
    """Decides whether a directive should fire at a given instant."""

    @abstractmethod
    def verdict(self, last_fired_at: int, now: int) -> Verdict:
        """
        Args:
            last_fired_at: Epoch ms of the last claim (0 = never fired).
            now:           Current epoch ms.
        """
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description, e.g. 'every 5m'."""
        ...


class IntervalTrigger(Trigger):
    """
    Fires every period_ms.

    A never-fired directive (last_fired_at=0) is due immediately.
    """

    def __init__(self, period_ms: int) -> None:
        if period_ms < 1:
            raise ValueError("Interval period must be positive")
        self._period_ms = period_ms

    @property
    def period_ms(self) -> int:
        return self._period_ms

    def verdict(self, last_fired_at: int, now: int) -> Verdict:
        if now - last_fired_at >= self._period_ms:
            return Verdict.fire()
        return Verdict.wait(last_fired_at + self._period_ms)

    @property
    def description(self) -> str:
        s = self._period_ms // 1000
        if s and s % 3600 == 0:
            return f"every {s // 3600}h"
        if s and s % 60 == 0:
            return f"every {s // 60}m"
        return f"every {s}s"


class SpecificTimeTrigger(Trigger):
    """
    Fires during the matching local minute on the selected weekdays.

    The debounce window stops a fine-grained poll from firing repeatedly
    inside the same matching minute. No next-eligible time is reported:
    the next chance is a later day, far beyond the poll cadence.
    """

    def __init__(
        self,
        time_of_day: str,
        weekdays: frozenset[int],
        debounce_ms: int = DEBOUNCE_MS,
        tz: tzinfo | None = None,
    ) -> None:
        self._hour, self._minute = parse_time_of_day(time_of_day)
        self._weekdays = frozenset(weekdays)
        self._debounce_ms = debounce_ms
        self._tz = tz

    def verdict(self, last_fired_at: int, now: int) -> Verdict:
        moment = to_datetime(now, self._tz)
        if sunday_weekday(moment) not in self._weekdays:
            return Verdict.wait()
        if (moment.hour, moment.minute) != (self._hour, self._minute):
            return Verdict.wait()
        if now - last_fired_at <= self._debounce_ms:
            return Verdict.wait()
        return Verdict.fire()

    @property
    def description(self) -> str:
        return f"at {self._hour:02d}:{self._minute:02d} on {sorted(self._weekdays)}"


def make_trigger(
    directive: Directive,
    debounce_ms: int = DEBOUNCE_MS,
    tz: tzinfo | None = None,
) -> Trigger:
    """
    Build the Trigger for a directive.

    Raises ParseError when the interval or time text is malformed; callers
    treat that as "never due" rather than falling back to a default period.
    """
    if directive.mode is DirectiveMode.INTERVAL:
        return IntervalTrigger(parse_interval(directive.interval).period_ms)
    if not directive.weekdays:
        raise ParseError("No active weekdays selected", directive_id=directive.id)
    return SpecificTimeTrigger(
        directive.time_of_day or "",
        directive.weekdays,
        debounce_ms=debounce_ms,
        tz=tz,
    )
