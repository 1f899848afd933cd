"""Learning from how the user reacts to reminders.

Dismissals, snoozes and water logs are counted per hour of day. An hour where
most reminders lead to a water log is "effective"; one where reminders are
mostly dismissed is "ineffective". The counts also nudge the suggested
reminder interval.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from hydro_reminders.config import TZ
from hydro_reminders.errors import ConfigError
from hydro_reminders.patterns import PatternSummary
from hydro_reminders.storage import KeyValueStore, read_json, write_json

log = logging.getLogger(__name__)

INTERACTIONS_KEY = "user_interaction_patterns"

MAX_DELAYS = 100
MAX_DELAY_SECONDS = 3600
EFFECTIVE_RATE = 0.5
INEFFECTIVE_RATE = 0.3
SLOW_RESPONSE_SECONDS = 300
DAY_END_HOUR = 22

NO_INSIGHT = "Keep logging your water intake to get personalized insights!"


@dataclass(slots=True)
class InteractionPatterns:
    dismissals: dict[int, int] = field(default_factory=dict)
    snoozes: dict[int, int] = field(default_factory=dict)
    water_logs: dict[int, int] = field(default_factory=dict)
    action_delays: list[float] = field(default_factory=list)
    last_updated: str | None = None  # ISO datetime

    def to_dict(self) -> dict:
        return {
            "dismissals": {str(h): n for h, n in self.dismissals.items()},
            "snoozes": {str(h): n for h, n in self.snoozes.items()},
            "water_logs": {str(h): n for h, n in self.water_logs.items()},
            "action_delays": self.action_delays,
            "last_updated": self.last_updated,
        }

    @staticmethod
    def from_dict(data: dict) -> InteractionPatterns:
        def counts(key: str) -> dict[int, int]:
            return {int(h): int(n) for h, n in (data.get(key) or {}).items()}

        return InteractionPatterns(
            dismissals=counts("dismissals"),
            snoozes=counts("snoozes"),
            water_logs=counts("water_logs"),
            action_delays=[float(d) for d in data.get("action_delays") or []],
            last_updated=data.get("last_updated"),
        )


@dataclass(frozen=True, slots=True)
class LearningResult:
    effective_hours: list[int]
    ineffective_hours: list[int]
    avg_response_time: int  # seconds
    recommendations: list[str]


class InteractionLog:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def load(self) -> InteractionPatterns:
        data = await read_json(self._store, INTERACTIONS_KEY)
        if not isinstance(data, dict):
            return InteractionPatterns()
        try:
            return InteractionPatterns.from_dict(data)
        except (AttributeError, TypeError, ValueError):
            log.warning("Interaction record is corrupt, starting fresh")
            return InteractionPatterns()

    async def _save(self, patterns: InteractionPatterns, at: datetime) -> None:
        patterns.last_updated = at.isoformat()
        await write_json(self._store, INTERACTIONS_KEY, patterns.to_dict())

    async def record_dismiss(self, at: datetime | None = None) -> None:
        at = at or datetime.now(TZ)
        patterns = await self.load()
        patterns.dismissals[at.hour] = patterns.dismissals.get(at.hour, 0) + 1
        await self._save(patterns, at)

    async def record_snooze(self, at: datetime | None = None) -> None:
        at = at or datetime.now(TZ)
        patterns = await self.load()
        patterns.snoozes[at.hour] = patterns.snoozes.get(at.hour, 0) + 1
        await self._save(patterns, at)

    async def record_water_log(self, at: datetime | None = None, delay_seconds: float | None = None) -> None:
        """Count a water log that followed a reminder; plausible delays are kept too."""
        at = at or datetime.now(TZ)
        patterns = await self.load()
        patterns.water_logs[at.hour] = patterns.water_logs.get(at.hour, 0) + 1
        if delay_seconds is not None and 0 < delay_seconds < MAX_DELAY_SECONDS:
            patterns.action_delays = [*patterns.action_delays, delay_seconds][-MAX_DELAYS:]
        await self._save(patterns, at)

    async def reset(self) -> None:
        await write_json(self._store, INTERACTIONS_KEY, InteractionPatterns().to_dict())


def _hour_list(hours: list[int]) -> str:
    return ", ".join(f"{h}:00" for h in hours[:3])


def learn(patterns: InteractionPatterns) -> LearningResult:
    effective: list[int] = []
    ineffective: list[int] = []
    for hour in range(24):
        dismissals = patterns.dismissals.get(hour, 0)
        snoozes = patterns.snoozes.get(hour, 0)
        logs = patterns.water_logs.get(hour, 0)
        total = dismissals + snoozes + logs
        if total == 0:
            continue
        rate = logs / total
        if rate >= EFFECTIVE_RATE:
            effective.append(hour)
        elif rate < INEFFECTIVE_RATE and dismissals > snoozes:
            ineffective.append(hour)

    delays = patterns.action_delays
    avg = round(sum(delays) / len(delays)) if delays else 0

    recommendations = []
    if ineffective:
        recommendations.append(f"Consider reducing reminders at {_hour_list(ineffective)} - you often dismiss them.")
    if effective:
        recommendations.append(f"Reminders work best for you around {_hour_list(effective)}.")
    if avg > SLOW_RESPONSE_SECONDS:
        recommendations.append(
            "You tend to respond to reminders after a delay. Consider setting reminders a bit earlier."
        )
    if not recommendations:
        recommendations.append(NO_INSIGHT)

    return LearningResult(effective, ineffective, avg, recommendations)


def optimal_interval(
    daily_goal: float,
    current_intake: float,
    pattern: PatternSummary,
    interactions: InteractionPatterns,
    hour: int,
) -> tuple[int, str]:
    """Suggested reminder interval in minutes for the current hour, with a reason."""
    if daily_goal <= 0:
        raise ConfigError(f"Daily goal must be positive, got {daily_goal!r}")
    progress = current_intake / daily_goal
    high_dismiss = interactions.dismissals.get(hour, 0) > 2 * interactions.water_logs.get(hour, 0)
    hours_left = max(0, DAY_END_HOUR - hour)
    intake_left = daily_goal - current_intake

    if progress >= 1.0:
        return 180, "Goal achieved! Reduced reminder frequency."
    if progress >= 0.8:
        return 120, "Almost at your goal! Gentle reminders."
    if high_dismiss:
        return 90, "Adjusted based on your preferences at this time."
    if hour in pattern.low_hours and progress < 0.5:
        return 30, "You often forget to drink at this time. Extra reminders!"
    if hours_left > 0 and intake_left > 0:
        per_hour = intake_left / hours_left
        if per_hour > 400:
            return 45, "Behind schedule. More frequent reminders to help you catch up."
        if per_hour < 150:
            return 90, "On track! Regular reminders."
    return 60, "Standard reminder interval."
