"""Reminder engine: the entry points the rest of the app calls.

Ties settings, intake history, message selection and the trigger registry
together. Scheduling is recomputed from scratch on every change: prior
reminder triggers are cancelled by kind, then the new set is registered.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from hydro_reminders import config
from hydro_reminders.adaptive import AdaptiveExplanation, explain
from hydro_reminders.battery import BatteryState, BatteryStateStore, plan_for_level
from hydro_reminders.clock import MINUTES_PER_DAY, TimeOfDay, in_quiet_hours, parse_time
from hydro_reminders.errors import DeliveryRegistrationFailed
from hydro_reminders.learning import InteractionLog, LearningResult, learn, optimal_interval
from hydro_reminders.messages import Language, Message, MessageCache, MessageSelector
from hydro_reminders.patterns import HistorySource, IntakeHistory, PatternSummary, analyze
from hydro_reminders.schedule import build_schedule
from hydro_reminders.settings import ReminderSettings, reminder_settings_store
from hydro_reminders.storage import FileStore, KeyValueStore
from hydro_reminders.triggers import (
    ACHIEVEMENT_KIND,
    CONTEXTUAL_KIND,
    REMINDER_KIND,
    STREAK_KIND,
    AfterSeconds,
    DailyAt,
    Notification,
    SchedulerTriggerRegistry,
    TriggerRegistry,
    cancel_kind,
    register_all,
)

log = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 7
MAX_SUGGESTED_TIMES = 8
SUGGESTED_HOURS = (7, 21)
TOO_MANY_TRIGGERS = 50
MAX_QUIET_MINUTES = 12 * 60


@dataclass(frozen=True, slots=True)
class ScheduleSummary:
    count: int
    times: list[TimeOfDay]
    next_time: TimeOfDay | None
    next_is_tomorrow: bool = False


@dataclass(frozen=True, slots=True)
class SmartRecommendations:
    suggested_interval: int
    suggested_times: list[str]
    insights: list[str]


@dataclass(frozen=True, slots=True)
class BatteryResult:
    optimized: bool
    changes: list[str]


@dataclass(frozen=True, slots=True)
class HealthStatus:
    is_healthy: bool
    scheduled_count: int
    issues: list[str]
    recommendations: list[str]


class ReminderEngine:
    def __init__(
        self,
        store: KeyValueStore,
        registry: TriggerRegistry,
        *,
        history: HistorySource | None = None,
        selector: MessageSelector | None = None,
        cache: MessageCache | None = None,
        language: Language | None = None,
        user_name: str | None = None,
        waking_hours: tuple[int, int] | None = None,
    ) -> None:
        self.registry = registry
        self.settings_store = reminder_settings_store(store)
        self.history = history if history is not None else IntakeHistory(store)
        self.interactions = InteractionLog(store)
        self.battery = BatteryStateStore(store)
        self.selector = selector or MessageSelector(cache=cache or MessageCache())
        self.language: Language = language or config.LANGUAGE
        self.user_name = user_name if user_name is not None else config.USER_NAME
        self.waking_hours = waking_hours or config.WAKING_HOURS

    @property
    def cache(self) -> MessageCache:
        return self.selector.cache

    def _now(self, now: datetime | None) -> datetime:
        return now or datetime.now(config.TZ)

    # --- Settings ---

    async def load_settings(self) -> ReminderSettings:
        return await self.settings_store.load()

    async def save_settings(self, partial: Mapping[str, Any], now: datetime | None = None) -> ReminderSettings:
        """Persist, then rebuild the daily schedule from the saved settings."""
        updated = await self.settings_store.save(partial)
        await self.reschedule(updated, now)
        return updated

    async def sync_quiet_hours(self, sleep: str | TimeOfDay, wake: str | TimeOfDay) -> ReminderSettings:
        """Align quiet hours with the user's sleep schedule."""
        start, end = parse_time(sleep), parse_time(wake)
        updated = await self.save_settings({"quiet_hours": {"start": str(start), "end": str(end)}})
        log.info("Quiet hours synced: %s - %s", start, end)
        return updated

    # --- Patterns ---

    async def get_detailed_patterns(
        self,
        window_days: int = DEFAULT_WINDOW_DAYS,
        now: datetime | None = None,
    ) -> PatternSummary:
        days = await self.history.last_n_days(window_days, self._now(now))
        return analyze(days, window_days, waking_hours=self.waking_hours)

    async def get_adaptive_explanation(self, now: datetime | None = None) -> AdaptiveExplanation:
        settings = await self.load_settings()
        return explain(settings, await self.get_detailed_patterns(now=now))

    # --- Daily schedule ---

    def preview_schedule(self, settings: ReminderSettings, pattern: PatternSummary | None = None) -> list[TimeOfDay]:
        """Times `reschedule` would register for these settings. Touches nothing."""
        return [entry.time for entry in build_schedule(settings, pattern)]

    def _reminder_message(self, settings: ReminderSettings, hour: int) -> Message:
        if settings.content_variant.motivational:
            return self.selector.time_based(hour, self.language, self.user_name)
        return self.selector.plain(self.language)

    async def reschedule(self, settings: ReminderSettings | None = None, now: datetime | None = None) -> list[str]:
        """Replace every registered daily reminder. Returns the new trigger ids."""
        settings = settings or await self.load_settings()
        await cancel_kind(self.registry, REMINDER_KIND)
        if not settings.enabled:
            log.info("Reminders disabled, nothing scheduled")
            return []

        pattern = await self.get_detailed_patterns(now=now) if settings.adaptive_enabled else None
        items = []
        for entry in build_schedule(settings, pattern):
            message = self._reminder_message(settings, entry.time.hour)
            payload = Notification(
                kind=REMINDER_KIND,
                title=message.title,
                body=message.body,
                data={"hour": entry.time.hour, "minute": entry.time.minute, "category": entry.category},
                sound=settings.sound_enabled,
                vibrate=settings.vibration_enabled,
            )
            items.append((DailyAt(entry.time), payload))

        ids = await register_all(self.registry, items)
        log.info(
            "Scheduled %d/%d daily reminders with %dmin interval",
            len(ids),
            len(items),
            settings.interval_minutes,
        )
        return ids

    async def scheduled_summary(self, now: datetime | None = None) -> ScheduleSummary:
        current = TimeOfDay.of(self._now(now))
        times = sorted(
            t.spec.time
            for t in await self.registry.list_all()
            if t.payload.kind == REMINDER_KIND and isinstance(t.spec, DailyAt)
        )
        upcoming = next((t for t in times if t > current), None)
        if upcoming is None and times:
            return ScheduleSummary(len(times), times, times[0], next_is_tomorrow=True)
        return ScheduleSummary(len(times), times, upcoming)

    # --- Immediate sends ---

    async def _send_now(
        self,
        kind: str,
        message: Message,
        data: dict[str, Any],
        now: datetime | None,
    ) -> str | None:
        settings = await self.load_settings()
        if not settings.enabled or in_quiet_hours(settings.quiet_hours, TimeOfDay.of(self._now(now))):
            log.debug("Suppressed %s notification", kind)
            return None
        payload = Notification(
            kind=kind,
            title=message.title,
            body=message.body,
            data={"message_id": message.id, **data},
            sound=settings.sound_enabled,
            vibrate=settings.vibration_enabled,
        )
        try:
            return await self.registry.schedule_at(AfterSeconds(0), payload)
        except DeliveryRegistrationFailed as exc:
            log.warning("Could not deliver %s notification: %s", kind, exc)
            return None

    async def send_contextual_reminder(
        self,
        current_intake: float,
        daily_goal: float,
        now: datetime | None = None,
    ) -> str | None:
        """Progress-aware reminder right now; None when disabled or in quiet hours."""
        now = self._now(now)
        message = self.selector.contextual(current_intake, daily_goal, now.hour, self.language, self.user_name)
        return await self._send_now(CONTEXTUAL_KIND, message, {"intake": current_intake, "goal": daily_goal}, now)

    async def send_streak_notification(self, days: int, now: datetime | None = None) -> str | None:
        message = self.selector.streak(days, self.language)
        return await self._send_now(STREAK_KIND, message, {"streak_days": days}, now)

    async def send_goal_achieved(self, now: datetime | None = None) -> str | None:
        message = self.selector.pick("achievement", self.language)
        return await self._send_now(ACHIEVEMENT_KIND, message, {}, now)

    # --- Interaction learning ---

    async def learning_insights(self) -> LearningResult:
        return learn(await self.interactions.load())

    async def suggested_interval(
        self,
        daily_goal: float,
        current_intake: float,
        now: datetime | None = None,
    ) -> tuple[int, str]:
        now = self._now(now)
        pattern = await self.get_detailed_patterns(now=now)
        interactions = await self.interactions.load()
        return optimal_interval(daily_goal, current_intake, pattern, interactions, now.hour)

    async def smart_recommendations(
        self,
        daily_goal: float,
        current_intake: float,
        now: datetime | None = None,
    ) -> SmartRecommendations:
        """Interval plus suggested times: effective hours on the hour, low hours at half past."""
        now = self._now(now)
        interval, reason = await self.suggested_interval(daily_goal, current_intake, now)
        learned = await self.learning_insights()
        pattern = await self.get_detailed_patterns(now=now)

        first, last = SUGGESTED_HOURS
        times = {TimeOfDay(h, 0) for h in learned.effective_hours if first <= h <= last}
        times.update(TimeOfDay(h, 30) for h in pattern.low_hours)
        return SmartRecommendations(
            suggested_interval=interval,
            suggested_times=[str(t) for t in sorted(times)[:MAX_SUGGESTED_TIMES]],
            insights=[reason, *learned.recommendations],
        )

    async def apply_smart_scheduling(
        self,
        daily_goal: float,
        current_intake: float,
        now: datetime | None = None,
    ) -> bool:
        """Save the learned interval and reschedule. Only when adaptive reminders are on."""
        settings = await self.load_settings()
        if not settings.adaptive_enabled:
            return False
        interval, reason = await self.suggested_interval(daily_goal, current_intake, now)
        await self.save_settings({"interval_minutes": interval}, now)
        log.info("Applied learned interval %dmin: %s", interval, reason)
        return True

    # --- Battery ---

    async def optimize_for_battery(self, level: float, now: datetime | None = None) -> BatteryResult:
        """Stretch the interval for a low charge level (0.0-1.0), or restore once charged."""
        settings = await self.load_settings()
        state = await self.battery.load()
        if state.is_optimized:
            interval, sound, vibration = state.original_interval, state.original_sound, state.original_vibration
        else:
            interval, sound, vibration = (
                settings.interval_minutes,
                settings.sound_enabled,
                settings.vibration_enabled,
            )

        plan = plan_for_level(level, interval, sound, vibration)
        if plan is None:
            if await self.restore_from_battery_optimization(now):
                return BatteryResult(False, ["Restored original notification settings"])
            return BatteryResult(False, ["Battery level is good, no optimization needed"])

        await self.save_settings(
            {
                "interval_minutes": plan.interval,
                "sound_enabled": plan.sound_enabled,
                "vibration_enabled": plan.vibration_enabled,
            },
            now,
        )
        await self.battery.save(
            BatteryState(
                is_optimized=True,
                battery_level=level,
                original_interval=interval,
                optimized_interval=plan.interval,
                original_sound=sound,
                original_vibration=vibration,
                last_optimized=self._now(now).isoformat(),
            )
        )
        log.info("Battery saver on at %d%%: %s", round(level * 100), "; ".join(plan.changes))
        return BatteryResult(True, plan.changes)

    async def restore_from_battery_optimization(self, now: datetime | None = None) -> bool:
        """Put back the pre-optimization interval and sound/vibration. False if not optimized."""
        state = await self.battery.load()
        if not state.is_optimized:
            return False
        await self.save_settings(
            {
                "interval_minutes": state.original_interval,
                "sound_enabled": state.original_sound,
                "vibration_enabled": state.original_vibration,
            },
            now,
        )
        await self.battery.save(
            BatteryState(original_interval=state.original_interval, optimized_interval=state.original_interval)
        )
        log.info("Battery saver off, interval back to %dmin", state.original_interval)
        return True

    # --- Health ---

    async def health_status(self) -> HealthStatus:
        settings = await self.load_settings()
        scheduled = len(await self.registry.list_all())
        battery = await self.battery.load()
        issues: list[str] = []
        recommendations: list[str] = []

        if not settings.enabled:
            issues.append("Notifications are disabled")
            recommendations.append("Enable notifications to receive hydration reminders")
        elif scheduled == 0:
            issues.append("No notifications scheduled")
            recommendations.append("Reschedule notifications in settings")
        if scheduled > TOO_MANY_TRIGGERS:
            issues.append("Too many notifications scheduled")
            recommendations.append("Consider cleaning up old notifications")
        if battery.is_optimized:
            issues.append("Battery optimization is active")
            recommendations.append("Charge your device to restore full notification frequency")

        quiet = settings.quiet_hours
        if quiet.enabled and (quiet.end.minutes - quiet.start.minutes) % MINUTES_PER_DAY > MAX_QUIET_MINUTES:
            issues.append("Quiet hours span more than 12 hours")
            recommendations.append("Consider reducing quiet hours for better hydration tracking")

        return HealthStatus(not issues, scheduled, issues, recommendations)


def setup_engine(
    deliver: Callable[[Notification], Awaitable[None] | None],
    *,
    data_dir: Path | None = None,
    scheduler: AsyncIOScheduler | None = None,
) -> tuple[ReminderEngine, AsyncIOScheduler]:
    """File-backed engine whose triggers run as jobs on an AsyncIOScheduler.

    The scheduler is returned unstarted; the caller starts it inside its loop.
    """
    scheduler = scheduler or AsyncIOScheduler(timezone=config.TZ)
    registry = SchedulerTriggerRegistry(scheduler, deliver, tz=config.TZ)
    engine = ReminderEngine(FileStore(data_dir or config.DATA_DIR), registry)
    return engine, scheduler
