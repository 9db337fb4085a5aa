"""
QSettings-backed configuration for the pup runtime.

On Windows QSettings maps to HKCU\\Software\\MenubarPup\\Core; elsewhere it is
an ini or plist file. Values are read once at startup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from PySide6.QtCore import QSettings

from core.indicator import DEFAULT_ACTIVE_MS, DEFAULT_ALERT_MS
from core.reminder_scheduler import (
    DEFAULT_LOOKAHEAD,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_RETENTION_MS,
    DEFAULT_THRESHOLD_MINUTES,
)
from menubar_pup.menubar_pup import logger as app_logger

_LOGGER = app_logger.get_logger()

ORGANIZATION = "MenubarPup"
APPLICATION = "Core"


@dataclass(frozen=True)
class _Bounds:
    default: int
    minimum: int
    maximum: int


_BOUNDS = {
    "ActiveSeconds": _Bounds(DEFAULT_ACTIVE_MS // 1000, 1, 60),
    "AlertSeconds": _Bounds(DEFAULT_ALERT_MS // 1000, 5, 600),
    "PollIntervalSeconds": _Bounds(DEFAULT_POLL_INTERVAL_MS // 1000, 60, 3600),
    "LookaheadHours": _Bounds(int(DEFAULT_LOOKAHEAD.total_seconds() // 3600), 1, 168),
    "ReminderThresholdMinutes": _Bounds(DEFAULT_THRESHOLD_MINUTES, 1, 120),
    "RetentionMinutes": _Bounds(DEFAULT_RETENTION_MS // 60_000, 5, 1440),
}


@dataclass(frozen=True, eq=True)
class PupSettings:
    active_seconds: int = _BOUNDS["ActiveSeconds"].default
    alert_seconds: int = _BOUNDS["AlertSeconds"].default
    poll_interval_seconds: int = _BOUNDS["PollIntervalSeconds"].default
    lookahead_hours: int = _BOUNDS["LookaheadHours"].default
    reminder_threshold_minutes: int = _BOUNDS["ReminderThresholdMinutes"].default
    retention_minutes: int = _BOUNDS["RetentionMinutes"].default
    calendar_enabled: bool = True
    simulate_activity: Optional[bool] = None
    notifications_enabled: bool = True
    sound_enabled: bool = True


class PupSettingsManager:
    """Loads persisted settings and clamps out-of-range durations."""

    def __init__(self, settings: Optional[QSettings] = None) -> None:
        self._settings = settings if settings is not None else QSettings(ORGANIZATION, APPLICATION)

    def read_settings(self) -> PupSettings:
        simulate = self._read_optional_bool("SimulateActivity")
        return PupSettings(
            active_seconds=self._read_duration("ActiveSeconds"),
            alert_seconds=self._read_duration("AlertSeconds"),
            poll_interval_seconds=self._read_duration("PollIntervalSeconds"),
            lookahead_hours=self._read_duration("LookaheadHours"),
            reminder_threshold_minutes=self._read_duration("ReminderThresholdMinutes"),
            retention_minutes=self._read_duration("RetentionMinutes"),
            calendar_enabled=self._read_bool("CalendarEnabled", True),
            simulate_activity=simulate,
            notifications_enabled=self._read_bool("NotificationsEnabled", True),
            sound_enabled=self._read_bool("SoundEnabled", True),
        )

    def _read_duration(self, name: str) -> int:
        bounds = _BOUNDS[name]
        raw = self._read_int(name)
        if raw is None:
            return bounds.default
        if raw < bounds.minimum or raw > bounds.maximum:
            _LOGGER.warning(
                "Setting {}={} is out of range; clamping to [{}, {}].",
                name,
                raw,
                bounds.minimum,
                bounds.maximum,
            )
        return max(bounds.minimum, min(bounds.maximum, raw))

    def _read_int(self, name: str) -> Optional[int]:
        value = self._value(name)
        if value is None:
            return None
        if isinstance(value, bool):
            _LOGGER.warning("Setting {} has unexpected boolean value.", name)
            return None
        try:
            return int(str(value).strip())
        except ValueError:
            _LOGGER.warning("Setting {} is not an integer: {!r}", name, value)
            return None

    def _read_bool(self, name: str, default: bool) -> bool:
        value = self._read_optional_bool(name)
        return default if value is None else value

    def _read_optional_bool(self, name: str) -> Optional[bool]:
        value = self._value(name)
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        _LOGGER.warning("Setting {} is not a boolean: {!r}", name, value)
        return None

    def _value(self, name: str) -> Any:
        if not self._settings.contains(name):
            return None
        return self._settings.value(name)
