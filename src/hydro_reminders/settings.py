"""Reminder and break settings, their defaults, and the persisted-settings adapter.

Persisted settings are plain JSON objects. Loading merges whatever was stored
over the defaults so downstream code always sees a fully populated record.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from hydro_reminders.clock import TimeOfDay, parse_time
from hydro_reminders.errors import ConfigError, InvalidInterval
from hydro_reminders.storage import KeyValueStore, read_json, write_json

log = logging.getLogger(__name__)

NOTIFICATION_SETTINGS_KEY = "notification_settings"
BREAK_SETTINGS_KEY = "break_reminder_settings"

BreakCategory = Literal["water", "stretch", "eyes", "walk", "breathe", "snack"]
BREAK_CATEGORIES: tuple[BreakCategory, ...] = ("water", "stretch", "eyes", "walk", "breathe", "snack")

S = TypeVar("S")


@dataclass(frozen=True, slots=True)
class QuietHours:
    enabled: bool = True
    start: TimeOfDay = TimeOfDay(22, 0)
    end: TimeOfDay = TimeOfDay(7, 0)


@dataclass(frozen=True, slots=True)
class ContentVariant:
    motivational: bool = True


@dataclass(frozen=True, slots=True)
class ReminderSettings:
    enabled: bool = True
    quiet_hours: QuietHours = QuietHours()
    interval_minutes: int = 60
    adaptive_enabled: bool = True
    content_variant: ContentVariant = ContentVariant()
    # Forwarded to delivery untouched.
    sound_enabled: bool = True
    vibration_enabled: bool = True


def _default_break_intervals() -> dict[str, int]:
    return {"water": 30, "stretch": 45, "eyes": 20, "walk": 60, "breathe": 30, "snack": 120}


@dataclass(frozen=True, slots=True)
class BreakSettings:
    enabled: bool = True
    during_focus_only: bool = True
    intervals: dict[str, int] = field(default_factory=_default_break_intervals)
    enabled_categories: tuple[str, ...] = ("water", "stretch", "eyes")
    # Integration flags, opaque to the scheduler.
    integrate_with_water_reminder: bool = True
    auto_log_water: bool = False
    water_amount_on_break: int = 150
    sound_enabled: bool = True
    vibration_enabled: bool = True
    show_motivation: bool = True

    def interval_for(self, category: str) -> int:
        return self.intervals[category]


DEFAULT_REMINDER_SETTINGS = ReminderSettings()
DEFAULT_BREAK_SETTINGS = BreakSettings()


# --- Plain-data conversion ---


def to_plain(value: Any) -> Any:
    """Convert settings (or any fragment of them) to JSON-ready data."""
    if isinstance(value, TimeOfDay):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_plain(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def merge_with_defaults(partial: Mapping[str, Any] | None, defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay `partial` on `defaults`, one level deep.

    Top-level keys replace the default value. When both sides hold a mapping
    (quiet hours, content variant, break intervals) their keys are overlaid
    instead, so a partial nested record keeps the remaining default keys.
    Keys the defaults don't know are dropped.
    """
    merged = {k: dict(v) if isinstance(v, Mapping) else v for k, v in defaults.items()}
    for key, value in (partial or {}).items():
        if key not in defaults:
            continue
        base = defaults[key]
        if isinstance(base, Mapping) and isinstance(value, Mapping):
            merged[key] = {**base, **value}
        else:
            merged[key] = value
    return merged


def _bool(data: Mapping[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


def _int(data: Mapping[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    return value


def _mapping(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data[key]
    if not isinstance(value, Mapping):
        raise ConfigError(f"{key} must be an object, got {value!r}")
    return value


def decode_reminder_settings(data: Mapping[str, Any]) -> ReminderSettings:
    quiet = _mapping(data, "quiet_hours")
    variant = _mapping(data, "content_variant")
    interval = _int(data, "interval_minutes")
    if interval <= 0:
        raise InvalidInterval(interval)
    return ReminderSettings(
        enabled=_bool(data, "enabled"),
        quiet_hours=QuietHours(
            enabled=_bool(quiet, "enabled"),
            start=parse_time(quiet["start"]),
            end=parse_time(quiet["end"]),
        ),
        interval_minutes=interval,
        adaptive_enabled=_bool(data, "adaptive_enabled"),
        content_variant=ContentVariant(motivational=_bool(variant, "motivational")),
        sound_enabled=_bool(data, "sound_enabled"),
        vibration_enabled=_bool(data, "vibration_enabled"),
    )


def decode_break_settings(data: Mapping[str, Any]) -> BreakSettings:
    intervals: dict[str, int] = {}
    for category, minutes in _mapping(data, "intervals").items():
        if category not in BREAK_CATEGORIES:
            raise ConfigError(f"Unknown break category {category!r}")
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            raise ConfigError(f"Interval for {category} must be an integer, got {minutes!r}")
        if minutes <= 0:
            raise InvalidInterval(minutes)
        intervals[category] = minutes

    raw_enabled = data["enabled_categories"]
    if not isinstance(raw_enabled, (list, tuple)):
        raise ConfigError(f"enabled_categories must be a list, got {raw_enabled!r}")
    enabled: list[str] = []
    for category in raw_enabled:
        if category not in BREAK_CATEGORIES:
            raise ConfigError(f"Unknown break category {category!r}")
        if category not in intervals:
            raise ConfigError(f"No interval configured for enabled category {category!r}")
        if category not in enabled:
            enabled.append(category)

    return BreakSettings(
        enabled=_bool(data, "enabled"),
        during_focus_only=_bool(data, "during_focus_only"),
        intervals=intervals,
        enabled_categories=tuple(enabled),
        integrate_with_water_reminder=_bool(data, "integrate_with_water_reminder"),
        auto_log_water=_bool(data, "auto_log_water"),
        water_amount_on_break=_int(data, "water_amount_on_break"),
        sound_enabled=_bool(data, "sound_enabled"),
        vibration_enabled=_bool(data, "vibration_enabled"),
        show_motivation=_bool(data, "show_motivation"),
    )


class SettingsStore(Generic[S]):
    """Reads and writes one settings record under a single store key."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        defaults: S,
        decode: Callable[[Mapping[str, Any]], S],
    ) -> None:
        self._store = store
        self._key = key
        self._defaults = defaults
        self._decode = decode

    @property
    def defaults(self) -> S:
        return self._defaults

    async def load(self) -> S:
        """Never raises: absent, corrupt, or mismatched data yields the defaults."""
        data = await read_json(self._store, self._key)
        if data is None:
            return self._defaults
        if not isinstance(data, dict):
            log.warning("Settings under %s are not an object, using defaults", self._key)
            return self._defaults
        try:
            return self._decode(merge_with_defaults(data, to_plain(self._defaults)))
        except (ConfigError, KeyError, TypeError) as exc:
            log.warning("Settings under %s don't match the schema (%s), using defaults", self._key, exc)
            return self._defaults

    async def save(self, partial: Mapping[str, Any]) -> S:
        """Read-merge-write. Raises ConfigError or StorageUnavailable."""
        current = await self.load()
        merged = merge_with_defaults(to_plain(partial), to_plain(current))
        updated = self._decode(merged)
        await write_json(self._store, self._key, to_plain(updated))
        return updated


def reminder_settings_store(store: KeyValueStore) -> SettingsStore[ReminderSettings]:
    return SettingsStore(store, NOTIFICATION_SETTINGS_KEY, DEFAULT_REMINDER_SETTINGS, decode_reminder_settings)


def break_settings_store(store: KeyValueStore) -> SettingsStore[BreakSettings]:
    return SettingsStore(store, BREAK_SETTINGS_KEY, DEFAULT_BREAK_SETTINGS, decode_break_settings)
