"""Exception taxonomy for the reminder engine."""


class ReminderError(Exception):
    """Base class for every error raised by hydro_reminders."""


class ConfigError(ReminderError, ValueError):
    """Rejected input at the boundary (never silently clamped)."""


class InvalidInterval(ConfigError):
    def __init__(self, minutes: int) -> None:
        super().__init__(f"Interval must be a positive number of minutes, got {minutes!r}")
        self.minutes = minutes


class InvalidTimeOfDay(ConfigError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Expected a wall-clock time as HH:MM, got {value!r}")
        self.value = value


class StorageUnavailable(ReminderError):
    """The key-value store failed to read or write. Writes may be retried."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Storage unavailable for {key!r}: {reason}")
        self.key = key


class DeliveryRegistrationFailed(ReminderError):
    """The OS trigger mechanism rejected a single registration."""


class SessionStateError(ReminderError):
    """A break session was asked to make an illegal state transition."""
