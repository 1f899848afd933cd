"""Break reminders during a focus session, plus the break history they feed.

Session triggers are relative one-shots registered when a session starts. Each
start first cancels every trigger tagged as a break reminder, so a new session
never inherits triggers from an earlier one. Pausing only affects the
foreground countdown; registered triggers are left alone.
"""

from __future__ import annotations

import enum
import logging
import random
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from hydro_reminders.config import TZ
from hydro_reminders.errors import ConfigError, DeliveryRegistrationFailed, InvalidInterval, SessionStateError
from hydro_reminders.messages import Language, load_content
from hydro_reminders.settings import BREAK_CATEGORIES, BreakSettings
from hydro_reminders.storage import KeyValueStore, read_json, write_json
from hydro_reminders.triggers import (
    BREAK_KIND,
    AfterSeconds,
    Notification,
    TriggerRegistry,
    cancel_kind,
    register_all,
)

log = logging.getLogger(__name__)

BREAK_HISTORY_KEY = "break_history"
HISTORY_LIMIT = 100

RECENT_WINDOW = timedelta(hours=1)
WATER_AFTER_MINUTES = 20
EYES_AFTER_MINUTES = 20
STRETCH_AFTER_MINUTES = 30


# --- Content ---


@dataclass(frozen=True, slots=True)
class BreakMessage:
    id: str
    title: str
    body: str
    duration: int  # suggested break length, seconds


@dataclass(frozen=True, slots=True)
class CategoryInfo:
    category: str
    emoji: str
    name: str
    description: str


def _category_table(category: str) -> dict[str, Any]:
    if category not in BREAK_CATEGORIES:
        raise ConfigError(f"Unknown break category {category!r}")
    return load_content("breaks")[category]


def category_info(category: str, language: Language = "en") -> CategoryInfo:
    info = _category_table(category)["info"]
    text = info.get(language) or info["en"]
    return CategoryInfo(category, info["emoji"], text["name"], text["description"])


def break_messages(category: str, language: Language = "en") -> list[BreakMessage]:
    messages = []
    for entry in _category_table(category)["messages"]:
        text = entry.get(language) or entry["en"]
        messages.append(BreakMessage(entry["id"], text["title"], text["body"], entry["duration"]))
    return messages


def _reason(category: str, language: Language) -> str:
    reason = _category_table(category)["reason"]
    return reason.get(language) or reason["en"]


def _notification(
    category: str,
    settings: BreakSettings,
    language: Language,
    rng: random.Random,
    **data: Any,
) -> Notification:
    message = rng.choice(break_messages(category, language))
    return Notification(
        kind=BREAK_KIND,
        title=message.title,
        body=message.body,
        data={"break_type": category, "suggested_duration": message.duration, **data},
        sound=settings.sound_enabled,
        vibrate=settings.vibration_enabled,
    )


# --- Session scheduling ---


def break_offsets(duration_minutes: int, interval_minutes: int) -> list[int]:
    """Minutes into the session at which a break falls: interval, 2*interval, ...

    Offsets are strictly below the duration, so nothing fires at the very end.
    """
    if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int) or interval_minutes <= 0:
        raise InvalidInterval(interval_minutes)
    return list(range(interval_minutes, duration_minutes, interval_minutes))


class SessionState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"


class BreakScheduler:
    """One focus session's break triggers.

    idle -> running <-> paused -> completed | stopped. `start` is legal from any
    state and replaces whatever the previous session registered.
    """

    def __init__(
        self,
        registry: TriggerRegistry,
        *,
        language: Language = "en",
        rng: random.Random | None = None,
    ) -> None:
        self._registry = registry
        self.language = language
        self._rng = rng or random.Random()
        self.state = SessionState.IDLE
        self.duration_minutes = 0
        self.trigger_ids: list[str] = []

    async def start(self, duration_minutes: int, settings: BreakSettings) -> list[str]:
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise ConfigError(f"Session duration must be a positive number of minutes, got {duration_minutes!r}")
        await cancel_kind(self._registry, BREAK_KIND)
        self.trigger_ids = []

        items = []
        if settings.enabled:
            for category in settings.enabled_categories:
                for offset in break_offsets(duration_minutes, settings.interval_for(category)):
                    payload = _notification(
                        category,
                        settings,
                        self.language,
                        self._rng,
                        during_focus=True,
                        offset_minutes=offset,
                    )
                    items.append((AfterSeconds(offset * 60), payload))
        self.trigger_ids = await register_all(self._registry, items)
        self.duration_minutes = duration_minutes
        self.state = SessionState.RUNNING
        log.info("Break session started: %d min, %d trigger(s)", duration_minutes, len(self.trigger_ids))
        return self.trigger_ids

    def _require(self, action: str, *allowed: SessionState) -> None:
        if self.state not in allowed:
            raise SessionStateError(f"Cannot {action} a session that is {self.state.value}")

    async def pause(self) -> None:
        self._require("pause", SessionState.RUNNING)
        self.state = SessionState.PAUSED

    async def resume(self) -> None:
        self._require("resume", SessionState.PAUSED)
        self.state = SessionState.RUNNING

    async def _finish(self, state: SessionState) -> int:
        cancelled = await cancel_kind(self._registry, BREAK_KIND)
        self.trigger_ids = []
        self.state = state
        return cancelled

    async def stop(self) -> int:
        self._require("stop", SessionState.RUNNING, SessionState.PAUSED)
        return await self._finish(SessionState.STOPPED)

    async def complete(self) -> int:
        self._require("complete", SessionState.RUNNING, SessionState.PAUSED)
        return await self._finish(SessionState.COMPLETED)


# --- History ---


@dataclass(frozen=True, slots=True)
class BreakHistoryEntry:
    id: str
    category: str
    timestamp: datetime
    during_focus: bool = False
    completed: bool = False
    logged_amount: float | None = None

    @staticmethod
    def new(category: str, *, at: datetime | None = None, during_focus: bool = False) -> BreakHistoryEntry:
        return BreakHistoryEntry(
            id=uuid4().hex[:8],
            category=category,
            timestamp=at or datetime.now(TZ),
            during_focus=during_focus,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
            "during_focus": self.during_focus,
            "completed": self.completed,
            "logged_amount": self.logged_amount,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> BreakHistoryEntry:
        return BreakHistoryEntry(
            id=data["id"],
            category=data["category"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            during_focus=bool(data.get("during_focus", False)),
            completed=bool(data.get("completed", False)),
            logged_amount=data.get("logged_amount"),
        )


@dataclass(frozen=True, slots=True)
class BreakStats:
    total: int = 0
    completed: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    water_logged: float = 0.0


class BreakHistory:
    """Newest-first list of break entries, capped at HISTORY_LIMIT."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def entries(self) -> list[BreakHistoryEntry]:
        data = await read_json(self._store, BREAK_HISTORY_KEY)
        if not isinstance(data, list):
            return []
        entries = []
        for item in data:
            try:
                entries.append(BreakHistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError):
                log.warning("Skipping corrupt break history entry: %.80r", item)
        return entries

    async def _write(self, entries: Sequence[BreakHistoryEntry]) -> None:
        await write_json(self._store, BREAK_HISTORY_KEY, [e.to_dict() for e in entries[:HISTORY_LIMIT]])

    async def append(self, entry: BreakHistoryEntry) -> None:
        await self._write([entry, *await self.entries()])

    async def complete(self, entry_id: str, logged_amount: float | None = None) -> bool:
        """Mark an entry done. False when the id is unknown."""
        entries = await self.entries()
        for i, entry in enumerate(entries):
            if entry.id != entry_id:
                continue
            entries[i] = replace(
                entry,
                completed=True,
                logged_amount=logged_amount if logged_amount is not None else entry.logged_amount,
            )
            await self._write(entries)
            return True
        return False

    async def recent(self, now: datetime, within: timedelta = RECENT_WINDOW) -> list[BreakHistoryEntry]:
        cutoff = now - within
        return [e for e in await self.entries() if e.timestamp > cutoff]

    async def today_stats(self, now: datetime) -> BreakStats:
        today = [e for e in await self.entries() if e.timestamp.astimezone(now.tzinfo).date() == now.date()]
        return BreakStats(
            total=len(today),
            completed=sum(1 for e in today if e.completed),
            by_category=dict(Counter(e.category for e in today)),
            water_logged=sum(e.logged_amount or 0 for e in today),
        )


# --- Suggestions and one-off reminders ---


@dataclass(frozen=True, slots=True)
class SuggestedBreak:
    category: str
    reason: str


def get_suggested_break(
    minutes_since_last_break: float,
    recent_history: Sequence[BreakHistoryEntry],
    enabled_categories: Sequence[str] = BREAK_CATEGORIES,
    *,
    now: datetime | None = None,
    language: Language = "en",
) -> SuggestedBreak | None:
    now = now or datetime.now(TZ)
    cutoff = now - RECENT_WINDOW
    taken = {e.category for e in recent_history if e.timestamp > cutoff}

    def suggest(category: str) -> SuggestedBreak:
        return SuggestedBreak(category, _reason(category, language))

    enabled = set(enabled_categories)
    if "water" in enabled and "water" not in taken and minutes_since_last_break >= WATER_AFTER_MINUTES:
        return suggest("water")
    # Eye strain builds regardless of recent eye breaks
    if "eyes" in enabled and minutes_since_last_break >= EYES_AFTER_MINUTES:
        return suggest("eyes")
    if "stretch" in enabled and "stretch" not in taken and minutes_since_last_break >= STRETCH_AFTER_MINUTES:
        return suggest("stretch")
    if "breathe" in enabled and "breathe" not in taken:
        return suggest("breathe")
    return None


async def send_break_reminder(
    registry: TriggerRegistry,
    history: BreakHistory,
    settings: BreakSettings,
    category: str,
    *,
    language: Language = "en",
    during_focus: bool = False,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str | None:
    """Deliver a break reminder right away and log it. None when disabled or rejected."""
    if not settings.enabled:
        return None
    payload = _notification(category, settings, language, rng or random.Random(), during_focus=during_focus)
    try:
        trigger_id = await registry.schedule_at(AfterSeconds(0), payload)
    except DeliveryRegistrationFailed as exc:
        log.warning("Break reminder for %s not delivered: %s", category, exc)
        return None
    await history.append(BreakHistoryEntry.new(category, at=now, during_focus=during_focus))
    return trigger_id
