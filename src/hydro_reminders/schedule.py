"""Base reminder schedule: evenly spaced daily times outside quiet hours."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from hydro_reminders.clock import MINUTES_PER_DAY, TimeOfDay, is_within_window
from hydro_reminders.errors import InvalidInterval
from hydro_reminders.settings import QuietHours, ReminderSettings

if TYPE_CHECKING:
    from hydro_reminders.patterns import PatternSummary

EntryCategory = Literal["base", "adaptive"]


@dataclass(frozen=True, slots=True)
class ScheduleEntry:
    time: TimeOfDay
    category: EntryCategory = "base"


def generate_schedule(interval_minutes: int, quiet: QuietHours) -> list[TimeOfDay]:
    """Walk one full day from the end of quiet hours in `interval_minutes` steps.

    Stepped times inside the quiet window are dropped. The result is sorted by
    time of day and has no duplicates.
    """
    if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int) or interval_minutes <= 0:
        raise InvalidInterval(interval_minutes)

    start = quiet.end.minutes if quiet.enabled else 0
    times: set[TimeOfDay] = set()
    for offset in range(0, MINUTES_PER_DAY, interval_minutes):
        moment = TimeOfDay.from_minutes(start + offset)
        if quiet.enabled and is_within_window(moment, quiet.start, quiet.end):
            continue
        times.add(moment)
    return sorted(times)


def build_schedule(settings: ReminderSettings, pattern: PatternSummary | None = None) -> list[ScheduleEntry]:
    """Base entries plus adaptive extras, sorted, one entry per time of day."""
    from hydro_reminders.adaptive import select_extra_reminders

    base = generate_schedule(settings.interval_minutes, settings.quiet_hours)
    entries = {t: ScheduleEntry(t, "base") for t in base}
    if pattern is not None:
        for extra in select_extra_reminders(settings, pattern, base=base):
            entries.setdefault(extra.time, extra)
    return [entries[t] for t in sorted(entries)]
