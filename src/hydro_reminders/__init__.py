"""Hydration reminders: daily schedule, adaptive extras, and focus-session breaks."""

from hydro_reminders.breaks import BreakHistory, BreakScheduler, get_suggested_break
from hydro_reminders.clock import TimeOfDay, is_within_window, parse_time
from hydro_reminders.countdown import SessionCountdown
from hydro_reminders.engine import ReminderEngine, setup_engine
from hydro_reminders.schedule import build_schedule, generate_schedule
from hydro_reminders.settings import BreakSettings, ReminderSettings
from hydro_reminders.storage import FileStore, MemoryStore
from hydro_reminders.triggers import MemoryTriggerRegistry, SchedulerTriggerRegistry

__all__ = [
    "BreakHistory",
    "BreakScheduler",
    "BreakSettings",
    "FileStore",
    "MemoryStore",
    "MemoryTriggerRegistry",
    "ReminderEngine",
    "ReminderSettings",
    "SchedulerTriggerRegistry",
    "SessionCountdown",
    "TimeOfDay",
    "build_schedule",
    "generate_schedule",
    "get_suggested_break",
    "is_within_window",
    "parse_time",
    "setup_engine",
]
