"""Extra reminders at historically low-intake hours.

The explanation shown to the user is derived from the same selection that
gets scheduled, so the two cannot disagree.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from hydro_reminders.clock import TimeOfDay, circular_distance, in_quiet_hours
from hydro_reminders.patterns import PatternSummary
from hydro_reminders.schedule import ScheduleEntry, generate_schedule
from hydro_reminders.settings import ReminderSettings

COVERAGE_TOLERANCE_MINUTES = 15


@dataclass(frozen=True, slots=True)
class AdaptiveExplanation:
    is_enabled: bool
    extra_reminders: list[int]
    explanation: str


def select_extra_reminders(
    settings: ReminderSettings,
    pattern: PatternSummary,
    *,
    base: Sequence[TimeOfDay] | None = None,
) -> list[ScheduleEntry]:
    """One adaptive entry per low hour outside quiet hours not already covered by the base schedule."""
    if not settings.adaptive_enabled:
        return []
    if base is None:
        base = generate_schedule(settings.interval_minutes, settings.quiet_hours)

    extras = []
    for hour in sorted(set(pattern.low_hours)):
        slot = TimeOfDay(hour, 0)
        if in_quiet_hours(settings.quiet_hours, slot):
            continue
        if any(circular_distance(slot, t) <= COVERAGE_TOLERANCE_MINUTES for t in base):
            continue
        extras.append(ScheduleEntry(slot, "adaptive"))
    return extras


def explain(settings: ReminderSettings, pattern: PatternSummary) -> AdaptiveExplanation:
    if not settings.adaptive_enabled:
        return AdaptiveExplanation(
            is_enabled=False,
            extra_reminders=[],
            explanation=(
                "Adaptive reminders are disabled. Enable them to get smart reminders "
                "based on your drinking patterns."
            ),
        )

    hours = [entry.time.hour for entry in select_extra_reminders(settings, pattern)]
    if not hours:
        if pattern.low_hours:
            text = "Your regular reminders already cover the hours you tend to forget to drink, or they fall in quiet hours."
        else:
            text = "No low-activity hours detected. You have consistent hydration throughout the day!"
        return AdaptiveExplanation(is_enabled=True, extra_reminders=[], explanation=text)

    times = ", ".join(f"{h}:00" for h in hours)
    return AdaptiveExplanation(
        is_enabled=True,
        extra_reminders=hours,
        explanation=f"Extra reminders will be sent at: {times} because you tend to forget to drink during these hours.",
    )
