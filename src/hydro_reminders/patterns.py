"""Hourly intake patterns: peak hours, low hours, and a plain-language summary.

History is read as per-day hourly totals. Days with no record inside the
analysis window count as zero intake, so sparse history leans toward "low".
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Protocol

from hydro_reminders.config import TZ, WAKING_HOURS
from hydro_reminders.errors import ConfigError
from hydro_reminders.storage import KeyValueStore, read_json, write_json

log = logging.getLogger(__name__)

INTAKE_HISTORY_KEY = "intake_history"

PEAK_COUNT = 5
LOW_FRACTION = 0.4  # of the overall hourly mean

GENERIC_RECOMMENDATION = "Start logging your water intake to get personalized insights!"

_RECOMMENDATIONS: dict[tuple[str, bool], str] = {
    ("morning", False): "You drink most of your water in the morning, peaking around {peak}. Keep it going into the afternoon.",
    ("morning", True): "You drink most in the morning (around {peak}) but tend to skip water at {low}. We'll remind you more during these times.",
    ("midday", False): "Great job! You drink most water around {peak} and stay steady through the day.",
    ("midday", True): "Your intake peaks around {peak}, but you tend to skip water at {low}. We'll remind you more during these times.",
    ("evening", False): "You catch up on water in the evening, peaking around {peak}. Try spreading it earlier in the day.",
    ("evening", True): "Most of your water comes late (around {peak}) and you tend to skip it at {low}. We'll remind you more during these times.",
}


@dataclass(frozen=True, slots=True)
class HistoricalDay:
    date: date
    hourly_totals: dict[int, float] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class HourStat:
    hour: int
    average: float


@dataclass(frozen=True, slots=True)
class PatternSummary:
    peak_hours: list[HourStat]
    low_hours: list[int]
    recommendation: str
    hourly: list[HourStat] = field(default_factory=list)
    days_analyzed: int = 0


def _period_of(hour: int) -> str:
    if hour < 11:
        return "morning"
    if hour < 15:
        return "midday"
    return "evening"


def _recommend(peaks: Sequence[HourStat], lows: Sequence[int]) -> str:
    if not peaks:
        return GENERIC_RECOMMENDATION
    counts = Counter(_period_of(p.hour) for p in peaks)
    top = max(counts.values())
    # Ties go to the period of the single highest hour
    cluster = next(_period_of(p.hour) for p in peaks if counts[_period_of(p.hour)] == top)
    best = peaks[0]
    peak = f"{best.hour}:00 (avg {round(best.average)}ml)"
    low = ", ".join(f"{h}:00" for h in lows[:3])
    return _RECOMMENDATIONS[(cluster, bool(lows))].format(peak=peak, low=low)


def analyze(
    history: Sequence[HistoricalDay],
    window_days: int = 7,
    *,
    waking_hours: tuple[int, int] = WAKING_HOURS,
) -> PatternSummary:
    if window_days <= 0:
        raise ConfigError(f"window_days must be positive, got {window_days!r}")

    days = sorted(history, key=lambda d: d.date)[-window_days:]
    if not days:
        return PatternSummary(
            peak_hours=[],
            low_hours=[],
            recommendation=GENERIC_RECOMMENDATION,
            hourly=[HourStat(h, 0.0) for h in range(24)],
        )

    totals = [0.0] * 24
    for day in days:
        for hour, volume in day.hourly_totals.items():
            if 0 <= hour <= 23:
                totals[hour] += volume
    hourly = [HourStat(h, totals[h] / window_days) for h in range(24)]

    peaks = sorted((s for s in hourly if s.average > 0), key=lambda s: (-s.average, s.hour))[:PEAK_COUNT]
    overall = sum(s.average for s in hourly) / 24
    first, last = waking_hours
    lows = [s.hour for s in hourly[first : last + 1] if s.average < LOW_FRACTION * overall]

    return PatternSummary(
        peak_hours=peaks,
        low_hours=lows,
        recommendation=_recommend(peaks, lows),
        hourly=hourly,
        days_analyzed=len(days),
    )


class HistorySource(Protocol):
    async def last_n_days(self, n: int, now: datetime | None = None) -> list[HistoricalDay]: ...


class IntakeHistory:
    """Append-only per-day hourly totals kept under one store key.

    A day's record is created by its first logged intake; later intakes that
    day add to the matching hour.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def _read(self) -> dict[str, dict[str, float]]:
        data = await read_json(self._store, INTAKE_HISTORY_KEY)
        return data if isinstance(data, dict) else {}

    async def log_intake(self, amount: float, at: datetime) -> HistoricalDay:
        if amount <= 0:
            raise ConfigError(f"Intake amount must be positive, got {amount!r}")
        data = await self._read()
        day_key = at.date().isoformat()
        hours = data.get(day_key)
        if not isinstance(hours, dict):
            hours = data[day_key] = {}
        hours[str(at.hour)] = hours.get(str(at.hour), 0.0) + amount
        await write_json(self._store, INTAKE_HISTORY_KEY, data)
        return _decode_day(day_key, hours)

    async def last_n_days(self, n: int, now: datetime | None = None) -> list[HistoricalDay]:
        """The n calendar days ending today, oldest first. Unrecorded days are empty."""
        if n <= 0:
            return []
        data = await self._read()
        today = (now or datetime.now(TZ)).date()
        days = []
        for offset in range(n - 1, -1, -1):
            day = today - timedelta(days=offset)
            hours = data.get(day.isoformat())
            if hours is None:
                days.append(HistoricalDay(day))
                continue
            try:
                days.append(_decode_day(day.isoformat(), hours))
            except (ValueError, TypeError, AttributeError):
                log.warning("Skipping corrupt intake record for %s", day)
                days.append(HistoricalDay(day))
        return days


def _decode_day(day_key: str, hours: dict[str, float]) -> HistoricalDay:
    return HistoricalDay(
        date=date.fromisoformat(day_key),
        hourly_totals={int(h): float(v) for h, v in hours.items()},
    )
