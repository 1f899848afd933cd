"""OS trigger boundary: what the engine registers and the backends that take it.

A trigger is either a daily wall-clock time or a one-shot "N seconds from now".
Every payload carries a `kind` marker so the engine can find and bulk-cancel
its own registrations without touching triggers owned by other features.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol
from uuid import uuid4
from zoneinfo import ZoneInfo

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from hydro_reminders.clock import TimeOfDay
from hydro_reminders.config import TZ
from hydro_reminders.errors import DeliveryRegistrationFailed

log = logging.getLogger(__name__)

REMINDER_KIND = "reminder"
BREAK_KIND = "break_reminder"
CONTEXTUAL_KIND = "contextual"
ACHIEVEMENT_KIND = "achievement"
STREAK_KIND = "streak"


@dataclass(frozen=True, slots=True)
class DailyAt:
    time: TimeOfDay


@dataclass(frozen=True, slots=True)
class AfterSeconds:
    seconds: int


TriggerSpec = DailyAt | AfterSeconds


@dataclass(frozen=True, slots=True)
class Notification:
    kind: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    sound: bool = True
    vibrate: bool = True


@dataclass(frozen=True, slots=True)
class ScheduledTrigger:
    id: str
    spec: TriggerSpec
    payload: Notification


class TriggerRegistry(Protocol):
    async def schedule_at(self, spec: TriggerSpec, payload: Notification) -> str: ...

    async def cancel(self, trigger_id: str) -> None: ...

    async def list_all(self) -> list[ScheduledTrigger]: ...


class MemoryTriggerRegistry:
    """In-process registry that records every registration and cancellation.

    `reject` decides per registration whether to fail it, standing in for a
    revoked permission or an exhausted OS quota.
    """

    def __init__(self, reject: Callable[[TriggerSpec, Notification], bool] | None = None) -> None:
        self.active: dict[str, ScheduledTrigger] = {}
        self.registered: list[ScheduledTrigger] = []
        self.cancelled: list[str] = []
        self.reject = reject

    async def schedule_at(self, spec: TriggerSpec, payload: Notification) -> str:
        if self.reject is not None and self.reject(spec, payload):
            raise DeliveryRegistrationFailed(f"rejected {payload.kind} trigger {spec}")
        trigger = ScheduledTrigger(id=uuid4().hex[:8], spec=spec, payload=payload)
        self.active[trigger.id] = trigger
        self.registered.append(trigger)
        return trigger.id

    async def cancel(self, trigger_id: str) -> None:
        if self.active.pop(trigger_id, None) is not None:
            self.cancelled.append(trigger_id)

    async def list_all(self) -> list[ScheduledTrigger]:
        return list(self.active.values())

    def fire(self, trigger_id: str) -> Notification:
        """Simulate delivery: one-shot triggers disappear, daily ones stay."""
        trigger = self.active[trigger_id]
        if isinstance(trigger.spec, AfterSeconds):
            del self.active[trigger_id]
        return trigger.payload


class SchedulerTriggerRegistry:
    """Registers triggers as APScheduler jobs.

    Daily specs use CronTrigger, one-shots use DateTrigger (auto-removed after
    firing). `deliver` receives the payload when a job fires.
    """

    def __init__(
        self,
        scheduler: BaseScheduler,
        deliver: Callable[[Notification], Awaitable[None] | None],
        *,
        tz: ZoneInfo = TZ,
    ) -> None:
        self._scheduler = scheduler
        self._deliver = deliver
        self._tz = tz
        self._triggers: dict[str, ScheduledTrigger] = {}

    def _job_trigger(self, spec: TriggerSpec) -> CronTrigger | DateTrigger:
        if isinstance(spec, DailyAt):
            return CronTrigger(hour=spec.time.hour, minute=spec.time.minute, timezone=self._tz)
        # A zero delay would already be in the past by the time the job is added
        delay = max(spec.seconds, 1)
        return DateTrigger(run_date=datetime.now(self._tz) + timedelta(seconds=delay), timezone=self._tz)

    async def _fire(self, trigger_id: str) -> None:
        trigger = self._triggers.get(trigger_id)
        if trigger is None:
            return
        if isinstance(trigger.spec, AfterSeconds):
            self._triggers.pop(trigger_id, None)
        try:
            result = self._deliver(trigger.payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            log.exception("Delivery of %s trigger %s failed", trigger.payload.kind, trigger_id)

    async def schedule_at(self, spec: TriggerSpec, payload: Notification) -> str:
        trigger = ScheduledTrigger(id=uuid4().hex[:8], spec=spec, payload=payload)
        try:
            self._scheduler.add_job(
                self._fire,
                self._job_trigger(spec),
                args=[trigger.id],
                id=f"{payload.kind}_{trigger.id}",
            )
        except Exception as exc:
            raise DeliveryRegistrationFailed(f"scheduler rejected {payload.kind} trigger: {exc}") from exc
        self._triggers[trigger.id] = trigger
        return trigger.id

    async def cancel(self, trigger_id: str) -> None:
        trigger = self._triggers.pop(trigger_id, None)
        if trigger is None:
            return
        job = self._scheduler.get_job(f"{trigger.payload.kind}_{trigger_id}")
        if job:
            job.remove()

    async def list_all(self) -> list[ScheduledTrigger]:
        live = []
        for trigger_id, trigger in list(self._triggers.items()):
            if self._scheduler.get_job(f"{trigger.payload.kind}_{trigger_id}") is None:
                del self._triggers[trigger_id]
                continue
            live.append(trigger)
        return live


async def register_all(registry: TriggerRegistry, items: Iterable[tuple[TriggerSpec, Notification]]) -> list[str]:
    """Register each trigger; a rejected one is logged and skipped, not fatal."""
    ids: list[str] = []
    for spec, payload in items:
        try:
            ids.append(await registry.schedule_at(spec, payload))
        except DeliveryRegistrationFailed as exc:
            log.warning("Skipping %s trigger %s: %s", payload.kind, spec, exc)
    return ids


async def cancel_kind(registry: TriggerRegistry, kind: str) -> int:
    """Cancel every registered trigger whose payload carries `kind`."""
    cancelled = 0
    for trigger in await registry.list_all():
        if trigger.payload.kind != kind:
            continue
        await registry.cancel(trigger.id)
        cancelled += 1
    if cancelled:
        log.debug("Cancelled %d %s trigger(s)", cancelled, kind)
    return cancelled
