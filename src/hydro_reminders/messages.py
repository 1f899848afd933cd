"""Reminder copy selection from the bilingual content tables.

Messages are grouped into buckets: the four time-of-day periods plus
achievement, streak, progress, personalized and plain. A per-bucket cache of
recently used ids steers selection away from immediate repeats.
"""

from __future__ import annotations

import functools
import random
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from importlib.resources import files
from typing import Any, Literal

import yaml

from hydro_reminders.errors import ConfigError

Language = Literal["en", "my"]
TimePeriod = Literal["morning", "midday", "afternoon", "evening", "achievement"]

# [start, end) hour boundaries; everything else is evening.
PERIOD_BOUNDARIES: tuple[tuple[int, int, TimePeriod], ...] = (
    (6, 10, "morning"),
    (10, 14, "midday"),
    (14, 18, "afternoon"),
)

NAME_FALLBACK: dict[str, str] = {"en": "Friend", "my": "သူငယ်ချင်း"}
PERSONALIZED_CHANCE = 0.4
DEFAULT_CACHE_SIZE = 3


@functools.cache
def load_content(name: str) -> dict[str, Any]:
    """Parse one of the packaged YAML content tables. Cached per process."""
    text = (files("hydro_reminders") / "content" / f"{name}.yaml").read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"Content table {name!r} is not a mapping")
    return data


def period_for_hour(hour: int) -> TimePeriod:
    for start, end, period in PERIOD_BOUNDARIES:
        if start <= hour < end:
            return period
    return "evening"


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    title: str
    body: str

    def fill(self, **values: object) -> Message:
        """Substitute {placeholders}; unknown braces are left alone."""
        title, body = self.title, self.body
        for key, value in values.items():
            title = title.replace(f"{{{key}}}", str(value))
            body = body.replace(f"{{{key}}}", str(value))
        return Message(self.id, title, body)


class MessageCache:
    """Last few message ids per bucket, oldest evicted first."""

    def __init__(self, size: int = DEFAULT_CACHE_SIZE) -> None:
        if size <= 0:
            raise ConfigError(f"Cache size must be positive, got {size!r}")
        self.size = size
        self._recent: dict[str, deque[str]] = {}

    def recent(self, bucket: str) -> tuple[str, ...]:
        """Oldest first."""
        return tuple(self._recent.get(bucket, ()))

    def remember(self, bucket: str, message_id: str) -> None:
        self._recent.setdefault(bucket, deque(maxlen=self.size)).append(message_id)

    def clear(self) -> None:
        self._recent.clear()


class MessageCatalog:
    def __init__(self, table: Mapping[str, Any] | None = None) -> None:
        self._table = table if table is not None else load_content("messages")

    def buckets(self) -> list[str]:
        return list(self._table)

    def pool(self, bucket: str, language: Language = "en") -> list[Message]:
        entries = self._table.get(bucket)
        if not entries:
            raise ConfigError(f"Unknown message bucket {bucket!r}")
        pool = []
        for entry in entries:
            text = entry.get(language) or entry["en"]
            pool.append(Message(id=entry["id"], title=text["title"], body=text["body"]))
        return pool

    def get(self, bucket: str, message_id: str, language: Language = "en") -> Message:
        for message in self.pool(bucket, language):
            if message.id == message_id:
                return message
        raise ConfigError(f"No message {message_id!r} in bucket {bucket!r}")


class MessageSelector:
    """Picks reminder copy. Owns its cache so tests can inspect and reset it."""

    def __init__(
        self,
        catalog: MessageCatalog | None = None,
        cache: MessageCache | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.catalog = catalog or MessageCatalog()
        self.cache = cache or MessageCache()
        self.rng = rng or random.Random()

    def pick(self, bucket: str, language: Language = "en") -> Message:
        pool = self.catalog.pool(bucket, language)
        recent = self.cache.recent(bucket)
        # Exclude as much recent history as still leaves a candidate
        candidates = pool
        for keep in range(len(recent), 0, -1):
            excluded = set(recent[-keep:])
            remaining = [m for m in pool if m.id not in excluded]
            if remaining:
                candidates = remaining
                break
        choice = self.rng.choice(candidates)
        self.cache.remember(bucket, choice.id)
        return choice

    def pick_personalized(self, name: str | None, language: Language = "en") -> Message:
        return self.pick("personalized", language).fill(name=name or NAME_FALLBACK[language])

    def plain(self, language: Language = "en") -> Message:
        return self.pick("plain", language)

    def time_based(self, hour: int, language: Language = "en", name: str | None = None) -> Message:
        if name and self.rng.random() < PERSONALIZED_CHANCE:
            return self.pick_personalized(name, language)
        return self.pick(period_for_hour(hour), language)

    def contextual(
        self,
        current_intake: float,
        daily_goal: float,
        hour: int,
        language: Language = "en",
        name: str | None = None,
    ) -> Message:
        """Progress-aware copy: achievement, progress milestones, else time-based."""
        if daily_goal <= 0:
            raise ConfigError(f"Daily goal must be positive, got {daily_goal!r}")
        progress = current_intake / daily_goal
        remaining = round((1 - progress) * daily_goal)
        percent = round(progress * 100)
        if progress >= 1:
            return self.pick("achievement", language)
        if progress >= 0.75:
            return self.catalog.get("progress", "progress-almost-there", language).fill(remaining=remaining)
        if progress >= 0.5:
            return self.catalog.get("progress", "progress-halfway", language).fill(percent=percent)
        if progress >= 0.25:
            return self.catalog.get("progress", "progress-good-start", language).fill(percent=percent)
        return self.time_based(hour, language, name)

    def streak(self, days: int, language: Language = "en") -> Message:
        return self.pick("streak", language).fill(days=days)
