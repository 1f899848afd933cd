"""Battery saver: stretch the reminder interval on low charge, restore it later.

The pre-optimization interval and sound/vibration flags are kept in a state
record so repeated low readings scale from the user's own values, not from an
already stretched interval.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from hydro_reminders.errors import ConfigError
from hydro_reminders.storage import KeyValueStore, read_json, write_json

log = logging.getLogger(__name__)

BATTERY_STATE_KEY = "battery_optimized_settings"

CRITICAL_LEVEL = 0.10
LOW_LEVEL = 0.20
MEDIUM_LEVEL = 0.35


@dataclass(frozen=True, slots=True)
class BatteryState:
    is_optimized: bool = False
    battery_level: float | None = None
    original_interval: int = 60
    optimized_interval: int = 60
    original_sound: bool = True
    original_vibration: bool = True
    last_optimized: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_optimized": self.is_optimized,
            "battery_level": self.battery_level,
            "original_interval": self.original_interval,
            "optimized_interval": self.optimized_interval,
            "original_sound": self.original_sound,
            "original_vibration": self.original_vibration,
            "last_optimized": self.last_optimized,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> BatteryState:
        return BatteryState(
            is_optimized=bool(data["is_optimized"]),
            battery_level=data.get("battery_level"),
            original_interval=int(data["original_interval"]),
            optimized_interval=int(data.get("optimized_interval", data["original_interval"])),
            original_sound=bool(data.get("original_sound", True)),
            original_vibration=bool(data.get("original_vibration", True)),
            last_optimized=data.get("last_optimized"),
        )


@dataclass(frozen=True, slots=True)
class BatteryPlan:
    interval: int
    sound_enabled: bool
    vibration_enabled: bool
    changes: list[str] = field(default_factory=list)


def plan_for_level(level: float, interval: int, sound: bool, vibration: bool) -> BatteryPlan | None:
    """Settings to apply at this charge level (0.0-1.0); None when no saving is needed.

    The interval only ever grows: an interval already above a tier's cap is kept.
    """
    if isinstance(level, bool) or not isinstance(level, (int, float)) or not 0 <= level <= 1:
        raise ConfigError(f"Battery level must be between 0 and 1, got {level!r}")

    if level < CRITICAL_LEVEL:
        new = max(interval, min(interval * 3, 240))
        changes = [f"Reminder interval increased to {new} minutes", "Vibration disabled", "Sound disabled"]
        return BatteryPlan(new, sound_enabled=False, vibration_enabled=False, changes=changes)
    if level < LOW_LEVEL:
        new = max(interval, min(interval * 2, 180))
        changes = [f"Reminder interval increased to {new} minutes", "Vibration disabled"]
        return BatteryPlan(new, sound_enabled=sound, vibration_enabled=False, changes=changes)
    if level < MEDIUM_LEVEL:
        new = max(interval, min(round(interval * 1.5), 120))
        return BatteryPlan(new, sound, vibration, [f"Reminder interval increased to {new} minutes"])
    return None


class BatteryStateStore:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def load(self) -> BatteryState:
        data = await read_json(self._store, BATTERY_STATE_KEY)
        if not isinstance(data, dict):
            return BatteryState()
        try:
            return BatteryState.from_dict(data)
        except (KeyError, TypeError, ValueError):
            log.warning("Battery state is corrupt, starting fresh")
            return BatteryState()

    async def save(self, state: BatteryState) -> None:
        await write_json(self._store, BATTERY_STATE_KEY, state.to_dict())
