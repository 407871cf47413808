"""
Directive — the core data model.

A Directive describes what prompt to send, where to send it, and when.
Two firing modes exist:

    interval       every N seconds/minutes/hours, e.g. interval="30m"
    specific time  at HH:MM on selected weekdays (0=Sunday … 6=Saturday)

Directives serialise to the same camelCase dict shape that the relay
stores, so local and remote persistence share one wire format:

    {"id": "...", "name": "...", "type": "interval", "cron": "10s",
     "time": null, "days": null, "prompt": "...", "targetChatId": "...",
     "enabled": true, "lastRun": 1760000000000}
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum

from continuum.core.clock import MS_PER_HOUR, MS_PER_MINUTE, MS_PER_SECOND
from continuum.core.errors import DirectiveError, ParseError

# Targets that never reach a real agent; delivery is simulated locally.
SIMULATE_TARGET = "simulation"
_SIMULATED_TARGETS = frozenset({SIMULATE_TARGET, "general"})

_INTERVAL_RE = re.compile(r"^\s*(\d+)\s*([a-zA-Z]+)\s*$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

_UNIT_MS = {
    "s": MS_PER_SECOND, "sec": MS_PER_SECOND, "secs": MS_PER_SECOND,
    "second": MS_PER_SECOND, "seconds": MS_PER_SECOND,
    "m": MS_PER_MINUTE, "min": MS_PER_MINUTE, "mins": MS_PER_MINUTE,
    "minute": MS_PER_MINUTE, "minutes": MS_PER_MINUTE,
    "h": MS_PER_HOUR, "hr": MS_PER_HOUR, "hrs": MS_PER_HOUR,
    "hour": MS_PER_HOUR, "hours": MS_PER_HOUR,
}


class DirectiveMode(str, Enum):
    INTERVAL = "interval"
    SPECIFIC_TIME = "specific"


def is_simulated_target(target: str) -> bool:
    return target in _SIMULATED_TARGETS


@dataclass(frozen=True)
class IntervalSpec:
    """A parsed interval: integer magnitude plus unit."""

    magnitude: int
    unit: str

    @property
    def period_ms(self) -> int:
        return self.magnitude * _UNIT_MS[self.unit]

    def __str__(self) -> str:
        return f"{self.magnitude}{self.unit[0]}"


def parse_interval(text: str | None) -> IntervalSpec:
    """
    Parse interval text such as "10s", "5 m" or "2 hours".

    Raises ParseError for anything that does not yield a positive period:
    empty text, missing unit, unknown unit, non-numeric or zero magnitude.
    """
    if not text:
        raise ParseError("Interval is empty")
    match = _INTERVAL_RE.match(text)
    if match is None:
        raise ParseError(f"Interval {text!r} is not '<number><unit>'")
    magnitude = int(match.group(1))
    unit = match.group(2).lower()
    if unit not in _UNIT_MS:
        raise ParseError(f"Interval {text!r} has unknown unit {unit!r}")
    if magnitude < 1:
        raise ParseError(f"Interval {text!r} must be at least 1 {unit}")
    return IntervalSpec(magnitude=magnitude, unit=unit)


def parse_time_of_day(text: str) -> tuple[int, int]:
    match = _TIME_RE.match(text or "")
    if match is None:
        raise ParseError(f"Time {text!r} is not HH:MM (24h)")
    return int(match.group(1)), int(match.group(2))


@dataclass
class Directive:
    """A scheduled prompt."""

    prompt: str
    target: str
    mode: DirectiveMode = DirectiveMode.INTERVAL
    interval: str | None = None        # interval mode only, e.g. "10s"
    time_of_day: str | None = None     # specific-time mode only, "HH:MM"
    weekdays: frozenset[int] | None = None  # specific-time mode only, 0=Sunday

    name: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    enabled: bool = True
    last_fired_at: int = 0  # epoch ms of last claim, 0 = never fired

    def __post_init__(self) -> None:
        self.mode = DirectiveMode(self.mode)
        if self.weekdays is not None:
            self.weekdays = frozenset(int(d) for d in self.weekdays)
        self._check_shape()

    def _check_shape(self) -> None:
        if self.mode is DirectiveMode.INTERVAL:
            if self.time_of_day is not None or self.weekdays is not None:
                raise DirectiveError(
                    "Interval directives must not carry a time of day or weekdays",
                    directive_id=self.id,
                )
            if self.interval is None:
                raise DirectiveError(
                    "Interval directives need an interval", directive_id=self.id
                )
        else:
            if self.interval is not None:
                raise DirectiveError(
                    "Specific-time directives must not carry an interval",
                    directive_id=self.id,
                )
            if self.time_of_day is None or self.weekdays is None:
                raise DirectiveError(
                    "Specific-time directives need a time of day and weekdays",
                    directive_id=self.id,
                )
            bad_days = [d for d in self.weekdays if not 0 <= d <= 6]
            if bad_days:
                raise DirectiveError(
                    f"Weekday indices out of range: {sorted(bad_days)}",
                    directive_id=self.id,
                )

    # ── Construction helpers ────────────────────────────────────────────────

    @classmethod
    def every(cls, interval: str, prompt: str, target: str, **kwargs) -> "Directive":
        return cls(prompt=prompt, target=target, mode=DirectiveMode.INTERVAL,
                   interval=interval, **kwargs)

    @classmethod
    def at(
        cls, time_of_day: str, weekdays, prompt: str, target: str, **kwargs
    ) -> "Directive":
        return cls(prompt=prompt, target=target, mode=DirectiveMode.SPECIFIC_TIME,
                   time_of_day=time_of_day, weekdays=frozenset(weekdays), **kwargs)

    # ── Validation ──────────────────────────────────────────────────────────

    def validation_warnings(self) -> list[str]:
        """
        Problems that keep this directive from ever firing.

        The directive is still stored; the evaluator treats it as never due.
        """
        warnings: list[str] = []
        try:
            if self.mode is DirectiveMode.INTERVAL:
                parse_interval(self.interval)
            else:
                parse_time_of_day(self.time_of_day or "")
        except ParseError as e:
            warnings.append(e.message)
        if self.mode is DirectiveMode.SPECIFIC_TIME and not self.weekdays:
            warnings.append("No active weekdays selected")
        return warnings

    @property
    def description(self) -> str:
        """Human-readable schedule, e.g. 'every 10s' or '09:00 on [Mon,Tue]'."""
        if self.mode is DirectiveMode.INTERVAL:
            return f"every {self.interval}"
        names = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
        days = ",".join(names[d] for d in sorted(self.weekdays or ()))
        return f"{self.time_of_day} on [{days}]"

    # ── Serialisation ───────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.mode.value,
            "cron": self.interval if self.interval is not None else "",
            "time": self.time_of_day,
            "days": sorted(self.weekdays) if self.weekdays is not None else None,
            "prompt": self.prompt,
            "targetChatId": self.target,
            "enabled": self.enabled,
            "lastRun": self.last_fired_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Directive":
        mode = DirectiveMode(d.get("type") or DirectiveMode.INTERVAL.value)  # untyped rows are legacy interval
        if mode is DirectiveMode.INTERVAL:
            interval, time_of_day, weekdays = d.get("cron") or "", None, None
        else:
            days = d.get("days")
            interval = None
            time_of_day = d.get("time") or ""
            weekdays = frozenset(days) if days is not None else frozenset()
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            mode=mode,
            interval=interval,
            time_of_day=time_of_day,
            weekdays=weekdays,
            prompt=d.get("prompt", ""),
            target=d.get("targetChatId", SIMULATE_TARGET),
            enabled=bool(d.get("enabled", True)),
            last_fired_at=int(d.get("lastRun") or 0),
        )
