"""Tests for learning.py — interaction counts and interval suggestions."""

import asyncio
from datetime import datetime, timezone

import pytest

from hydro_reminders.errors import ConfigError
from hydro_reminders.learning import (
    INTERACTIONS_KEY,
    MAX_DELAYS,
    NO_INSIGHT,
    InteractionLog,
    InteractionPatterns,
    learn,
    optimal_interval,
)
from hydro_reminders.patterns import PatternSummary
from hydro_reminders.storage import MemoryStore


def _run(coro):
    return asyncio.run(coro)


def _at(hour):
    return datetime(2026, 3, 10, hour, 15, tzinfo=timezone.utc)


NO_PATTERN = PatternSummary(peak_hours=[], low_hours=[], recommendation="")


def test_records_counts_per_hour():
    log = InteractionLog(MemoryStore())

    _run(log.record_dismiss(_at(9)))
    _run(log.record_dismiss(_at(9)))
    _run(log.record_snooze(_at(13)))
    _run(log.record_water_log(_at(10), delay_seconds=120))

    patterns = _run(log.load())
    assert patterns.dismissals == {9: 2}
    assert patterns.snoozes == {13: 1}
    assert patterns.water_logs == {10: 1}
    assert patterns.action_delays == [120]
    assert patterns.last_updated == _at(10).isoformat()


@pytest.mark.parametrize("delay", [0, -5, 3600, 7200])
def test_implausible_delays_not_kept(delay):
    log = InteractionLog(MemoryStore())

    _run(log.record_water_log(_at(10), delay_seconds=delay))

    patterns = _run(log.load())
    assert patterns.action_delays == []
    assert patterns.water_logs == {10: 1}


def test_delays_capped_to_most_recent():
    log = InteractionLog(MemoryStore())
    for i in range(MAX_DELAYS + 3):
        _run(log.record_water_log(_at(10), delay_seconds=i + 1))

    delays = _run(log.load()).action_delays
    assert len(delays) == MAX_DELAYS
    assert delays[0] == 4
    assert delays[-1] == MAX_DELAYS + 3


def test_corrupt_record_starts_fresh():
    store = MemoryStore({INTERACTIONS_KEY: b'{"dismissals": {"nine": 1}}'})

    assert _run(InteractionLog(store).load()) == InteractionPatterns()


def test_reset_clears_everything():
    log = InteractionLog(MemoryStore())
    _run(log.record_dismiss(_at(9)))

    _run(log.reset())

    assert _run(log.load()).dismissals == {}


def test_learn_classifies_hours():
    patterns = InteractionPatterns(
        dismissals={9: 4, 14: 1, 20: 1},
        snoozes={9: 1, 20: 3},
        water_logs={10: 3, 14: 1},
        action_delays=[600, 400],
    )

    result = learn(patterns)

    assert result.effective_hours == [10, 14]
    # 20:00 is mostly snoozed, not dismissed
    assert result.ineffective_hours == [9]
    assert result.avg_response_time == 500
    assert any("9:00" in r and "dismiss" in r for r in result.recommendations)
    assert any("10:00, 14:00" in r for r in result.recommendations)
    assert any("delay" in r for r in result.recommendations)


def test_learn_without_data():
    result = learn(InteractionPatterns())

    assert result.effective_hours == []
    assert result.ineffective_hours == []
    assert result.avg_response_time == 0
    assert result.recommendations == [NO_INSIGHT]


@pytest.mark.parametrize(
    ("intake", "hour", "low_hours", "dismissals", "expected"),
    [
        (2000, 10, [], {}, 180),
        (1700, 10, [], {}, 120),
        (500, 10, [], {10: 3}, 90),
        (500, 14, [14], {}, 30),
        (200, 18, [], {}, 45),
        (1500, 12, [], {}, 90),
        (1000, 18, [], {}, 60),
        (1000, 23, [], {}, 60),
    ],
)
def test_optimal_interval(intake, hour, low_hours, dismissals, expected):
    pattern = PatternSummary(peak_hours=[], low_hours=low_hours, recommendation="")
    interactions = InteractionPatterns(dismissals=dismissals)

    interval, reason = optimal_interval(2000, intake, pattern, interactions, hour)

    assert interval == expected
    assert reason


def test_optimal_interval_rejects_bad_goal():
    with pytest.raises(ConfigError):
        optimal_interval(0, 100, NO_PATTERN, InteractionPatterns(), 10)
