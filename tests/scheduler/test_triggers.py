"""Tests for continuum/scheduler/triggers.py"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from continuum.core.errors import ParseError
from continuum.scheduler.directive import Directive
from continuum.scheduler.triggers import (
    DEBOUNCE_MS,
    IntervalTrigger,
    SpecificTimeTrigger,
    Verdict,
    VerdictKind,
    make_trigger,
)

UTC = timezone.utc


def utc_ms(year, month, day, hour=0, minute=0, second=0):
    return int(datetime(year, month, day, hour, minute, second, tzinfo=UTC).timestamp() * 1000)


TUESDAY_0900 = utc_ms(2026, 10, 20, 9, 0)


# ── IntervalTrigger ──────────────────────────────────────────────────────────

class TestIntervalTrigger:
    def test_never_fired_is_due(self):
        trigger = IntervalTrigger(10_000)
        assert trigger.verdict(last_fired_at=0, now=TUESDAY_0900).due

    def test_due_exactly_at_period(self):
        trigger = IntervalTrigger(10_000)
        assert trigger.verdict(last_fired_at=1_000, now=11_000).due

    def test_not_due_reports_next_eligible(self):
        trigger = IntervalTrigger(10_000)
        verdict = trigger.verdict(last_fired_at=1_000, now=10_999)
        assert verdict.kind is VerdictKind.NOT_DUE_YET
        assert verdict.next_eligible_at == 11_000

    def test_invalid_period_raises(self):
        with pytest.raises(ValueError):
            IntervalTrigger(0)

    def test_description_seconds(self):
        assert "30s" in IntervalTrigger(30_000).description

    def test_description_minutes(self):
        assert "5m" in IntervalTrigger(300_000).description

    def test_description_hours(self):
        assert "2h" in IntervalTrigger(7_200_000).description


# ── SpecificTimeTrigger ──────────────────────────────────────────────────────

class TestSpecificTimeTrigger:
    def _trigger(self, days=(1, 2, 3, 4, 5)) -> SpecificTimeTrigger:
        return SpecificTimeTrigger("09:00", frozenset(days), tz=UTC)

    def test_due_in_matching_minute(self):
        assert self._trigger().verdict(last_fired_at=0, now=TUESDAY_0900).due

    def test_due_late_in_matching_minute(self):
        now = TUESDAY_0900 + 59_000
        assert self._trigger().verdict(last_fired_at=0, now=now).due

    def test_minute_before_not_due(self):
        now = utc_ms(2026, 10, 20, 8, 59, 30)
        verdict = self._trigger().verdict(last_fired_at=0, now=now)
        assert verdict.kind is VerdictKind.NOT_DUE_YET
        assert verdict.next_eligible_at is None

    def test_wrong_weekday_not_due(self):
        # Tuesday = 2, only Sunday selected
        verdict = self._trigger(days=(0,)).verdict(last_fired_at=0, now=TUESDAY_0900)
        assert not verdict.due

    def test_sunday_is_index_zero(self):
        sunday = utc_ms(2026, 10, 25, 9, 0)
        assert self._trigger(days=(0,)).verdict(last_fired_at=0, now=sunday).due

    def test_debounce_blocks_second_fire_in_same_minute(self):
        trigger = self._trigger()
        assert not trigger.verdict(last_fired_at=TUESDAY_0900, now=TUESDAY_0900 + 30_000).due

    def test_debounce_boundary_is_strictly_greater(self):
        trigger = SpecificTimeTrigger("09:00", frozenset({2}), debounce_ms=10_000, tz=UTC)
        last = TUESDAY_0900
        assert not trigger.verdict(last_fired_at=last, now=last + 10_000).due
        assert trigger.verdict(last_fired_at=last, now=last + 10_001).due

    def test_next_day_due_again(self):
        wednesday = utc_ms(2026, 10, 21, 9, 0)
        assert self._trigger().verdict(last_fired_at=TUESDAY_0900, now=wednesday).due

    def test_bad_time_text_raises(self):
        with pytest.raises(ParseError):
            SpecificTimeTrigger("25:00", frozenset({1}))


# ── make_trigger ─────────────────────────────────────────────────────────────

class TestMakeTrigger:
    def test_interval_directive(self):
        trigger = make_trigger(Directive.every("10s", "ping", "chat-1"))
        assert isinstance(trigger, IntervalTrigger)
        assert trigger.period_ms == 10_000

    def test_specific_directive(self):
        trigger = make_trigger(Directive.at("09:00", [2], "ping", "chat-1"), tz=UTC)
        assert isinstance(trigger, SpecificTimeTrigger)

    @pytest.mark.parametrize("text", ["", "abc", "10", "10x", "0s", "-5m"])
    def test_malformed_interval_raises(self, text):
        with pytest.raises(ParseError):
            make_trigger(Directive.every(text, "ping", "chat-1"))

    def test_no_weekdays_raises(self):
        with pytest.raises(ParseError):
            make_trigger(Directive.at("09:00", [], "ping", "chat-1"))

    def test_default_debounce_is_one_minute(self):
        assert DEBOUNCE_MS == 60_000


def test_verdict_constructors():
    assert Verdict.fire().due
    assert Verdict.wait(5).next_eligible_at == 5
    invalid = Verdict.invalid("bad")
    assert invalid.kind is VerdictKind.INVALID
    assert invalid.reason == "bad"
    assert not invalid.due
