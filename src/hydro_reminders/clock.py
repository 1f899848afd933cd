"""Wall-clock times of day and the daily-window test used for quiet hours.

A window is half-open: it contains its start minute but not its end minute.
A start later than the end wraps past midnight. A start equal to the end is a
zero-width window that contains nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from hydro_reminders.errors import InvalidTimeOfDay

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


class QuietWindow(Protocol):
    enabled: bool
    start: TimeOfDay
    end: TimeOfDay


@dataclass(frozen=True, slots=True, order=True)
class TimeOfDay:
    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):
            raise InvalidTimeOfDay(f"{self.hour}:{self.minute}")

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    @staticmethod
    def from_minutes(minutes: int) -> TimeOfDay:
        """Wraps at midnight, so 1500 becomes 01:00."""
        minutes %= MINUTES_PER_DAY
        return TimeOfDay(minutes // 60, minutes % 60)

    @staticmethod
    def of(moment: datetime) -> TimeOfDay:
        return TimeOfDay(moment.hour, moment.minute)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def parse_time(value: str | TimeOfDay) -> TimeOfDay:
    """Parse "HH:MM"; "7:30" is accepted, "24:00" and "7" are not."""
    if isinstance(value, TimeOfDay):
        return value
    if not isinstance(value, str):
        raise InvalidTimeOfDay(value)
    match = _HHMM.match(value.strip())
    if match is None:
        raise InvalidTimeOfDay(value)
    return TimeOfDay(int(match.group(1)), int(match.group(2)))


def is_within_window(now: TimeOfDay, start: TimeOfDay, end: TimeOfDay) -> bool:
    if start == end:
        return False
    if start < end:
        return start <= now < end
    return now >= start or now < end


def circular_distance(a: TimeOfDay, b: TimeOfDay) -> int:
    """Minutes between two times of day, going whichever way round is shorter."""
    diff = abs(a.minutes - b.minutes)
    return min(diff, MINUTES_PER_DAY - diff)


def in_quiet_hours(quiet: QuietWindow, now: TimeOfDay) -> bool:
    return quiet.enabled and is_within_window(now, quiet.start, quiet.end)
