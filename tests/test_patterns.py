"""Tests for patterns.py — hourly intake analysis and intake history."""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from hydro_reminders.errors import ConfigError
from hydro_reminders.patterns import (
    GENERIC_RECOMMENDATION,
    INTAKE_HISTORY_KEY,
    HistoricalDay,
    IntakeHistory,
    analyze,
)
from hydro_reminders.storage import MemoryStore


def _run(coro):
    return asyncio.run(coro)


def _week(hourly_totals, days=7, start=date(2026, 3, 1)):
    return [HistoricalDay(start + timedelta(days=i), dict(hourly_totals)) for i in range(days)]


def test_empty_history_has_no_peaks_or_lows():
    summary = analyze([], 7)

    assert summary.peak_hours == []
    assert summary.low_hours == []
    assert summary.recommendation == GENERIC_RECOMMENDATION
    assert len(summary.hourly) == 24
    assert summary.days_analyzed == 0


def test_peaks_sorted_descending_and_capped_at_five():
    history = _week({8: 100, 9: 600, 10: 300, 12: 300, 15: 200, 18: 50, 20: 400})

    summary = analyze(history, 7)

    assert [p.hour for p in summary.peak_hours] == [9, 20, 10, 12, 15]
    assert summary.peak_hours[0].average == pytest.approx(600)


def test_peak_ties_break_to_earlier_hour():
    summary = analyze(_week({14: 200, 9: 200}), 7)

    assert [p.hour for p in summary.peak_hours] == [9, 14]


def test_zero_hours_are_never_peaks():
    summary = analyze(_week({10: 250}), 7)

    assert [p.hour for p in summary.peak_hours] == [10]


def test_low_hours_are_waking_hours_below_fraction_of_mean():
    totals = {h: 200 for h in range(8, 21)}
    totals[15] = 10
    totals[16] = 0

    summary = analyze(_week(totals), 7)

    assert summary.low_hours == [15, 16]
    assert all(8 <= h <= 20 for h in summary.low_hours)


def test_waking_hours_override_narrows_low_hours():
    totals = {h: 200 for h in range(9, 18)}

    summary = analyze(_week(totals), 7, waking_hours=(8, 10))

    assert summary.low_hours == [8]


def test_missing_days_count_as_zero():
    one_day = [HistoricalDay(date(2026, 3, 1), {10: 700})]

    summary = analyze(one_day, 7)

    assert summary.hourly[10].average == pytest.approx(100)
    assert summary.days_analyzed == 1


def test_only_last_window_days_are_used():
    old = HistoricalDay(date(2026, 1, 1), {6: 5000})
    recent = _week({10: 300}, start=date(2026, 3, 1))

    summary = analyze([old, *recent], 7)

    assert summary.hourly[6].average == 0
    assert summary.days_analyzed == 7


def test_recommendation_is_deterministic_and_mentions_peak():
    totals = {h: 200 for h in range(8, 21)}
    totals[10] = 900
    totals[15] = 0
    history = _week(totals)

    first = analyze(history, 7).recommendation
    second = analyze(history, 7).recommendation

    assert first == second
    assert "10:00" in first
    assert "15:00" in first


def test_recommendation_without_lows_differs_from_with_lows():
    steady = analyze(_week({h: 200 for h in range(8, 21)}), 7)
    gappy_totals = {h: 200 for h in range(8, 21)}
    gappy_totals[16] = 0
    gappy = analyze(_week(gappy_totals), 7)

    assert steady.low_hours == []
    assert gappy.low_hours == [16]
    assert steady.recommendation != gappy.recommendation


def test_non_positive_window_rejected():
    with pytest.raises(ConfigError):
        analyze([], 0)


def test_log_intake_creates_day_and_accumulates_hour():
    history = IntakeHistory(MemoryStore())
    at = datetime(2026, 3, 5, 9, 15, tzinfo=timezone.utc)

    _run(history.log_intake(250, at))
    day = _run(history.log_intake(150, at.replace(minute=50)))

    assert day.date == date(2026, 3, 5)
    assert day.hourly_totals == {9: 400.0}


def test_last_n_days_is_calendar_window_ending_today():
    history = IntakeHistory(MemoryStore())
    for offset in range(5):
        _run(history.log_intake(100, datetime(2026, 3, 1 + offset, 10, tzinfo=timezone.utc)))

    days = _run(history.last_n_days(3, now=datetime(2026, 3, 5, 18, tzinfo=timezone.utc)))

    assert [d.date.day for d in days] == [3, 4, 5]
    assert all(d.hourly_totals == {10: 100.0} for d in days)
    assert _run(history.last_n_days(0)) == []


def test_last_n_days_fills_unrecorded_days_with_zero():
    history = IntakeHistory(MemoryStore())
    _run(history.log_intake(300, datetime(2026, 3, 3, 9, tzinfo=timezone.utc)))

    days = _run(history.last_n_days(4, now=datetime(2026, 3, 5, 8, tzinfo=timezone.utc)))

    assert [d.date for d in days] == [date(2026, 3, 2) + timedelta(days=i) for i in range(4)]
    assert [d.hourly_totals for d in days] == [{}, {9: 300.0}, {}, {}]


def test_old_history_outside_window_is_ignored():
    history = IntakeHistory(MemoryStore())
    now = datetime(2026, 3, 31, 12, tzinfo=timezone.utc)
    for offset in range(7):
        _run(history.log_intake(500, now - timedelta(days=40 + offset)))

    summary = analyze(_run(history.last_n_days(7, now=now)), 7)

    assert summary.peak_hours == []
    assert summary.low_hours == []


def test_last_n_days_treats_corrupt_records_as_empty():
    store = MemoryStore({INTAKE_HISTORY_KEY: b'{"2026-03-01": {"10": 200}, "2026-03-02": {"ten": 5}}'})

    days = _run(IntakeHistory(store).last_n_days(2, now=datetime(2026, 3, 2, tzinfo=timezone.utc)))

    assert [d.hourly_totals for d in days] == [{10: 200.0}, {}]


def test_log_intake_rejects_non_positive_amount():
    with pytest.raises(ConfigError):
        _run(IntakeHistory(MemoryStore()).log_intake(0, datetime(2026, 3, 1, 10, tzinfo=timezone.utc)))
