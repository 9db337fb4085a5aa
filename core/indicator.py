"""
Indicator state machine deciding which status the pup shows and for how long.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal

from core.timers import Countdown
from shared.calendar_event import UpcomingEvent
from menubar_pup.menubar_pup import logger as app_logger

DEFAULT_ACTIVE_MS = 3_000
DEFAULT_ALERT_MS = 30_000


class IndicatorState(Enum):
    IDLE = "Idle"
    ACTIVE = "Active"
    ALERT = "Alert"


class IndicatorStateController(QObject):
    """
    Owns the current IndicatorState and applies the transition rules.

    Activity edges move Idle/Active into Active and reset a single countdown.
    Reminders pre-empt everything with Alert; while Alert is shown activity is
    swallowed. When the Alert countdown ends the pup goes back to Idle even if
    the user was typing during the alert.
    """

    stateChanged = Signal(object)
    reminderRaised = Signal(object, int)

    def __init__(
        self,
        timers,
        *,
        active_duration_ms: int = DEFAULT_ACTIVE_MS,
        alert_duration_ms: int = DEFAULT_ALERT_MS,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = app_logger.get_logger()
        self.active_duration_ms = active_duration_ms
        self.alert_duration_ms = alert_duration_ms
        self._state = IndicatorState.IDLE
        self._active_countdown = Countdown("active", timers)
        self._alert_countdown = Countdown("alert", timers)

    def current_state(self) -> IndicatorState:
        return self._state

    def on_change(self, subscriber: Callable[[IndicatorState], None]) -> None:
        """Invoke ``subscriber(new_state)`` synchronously on every transition."""
        self.stateChanged.connect(subscriber)

    def on_reminder(self, subscriber: Callable[[UpcomingEvent, int], None]) -> None:
        self.reminderRaised.connect(subscriber)

    def report_activity(self) -> None:
        if self._state is IndicatorState.ALERT:
            return
        self._active_countdown.restart(self.active_duration_ms, self._on_active_expired)
        self._transition(IndicatorState.ACTIVE)

    def report_reminder(self, event: UpcomingEvent, minutes_until: int) -> None:
        self._active_countdown.cancel()
        self._alert_countdown.restart(self.alert_duration_ms, self._on_alert_expired)
        self._transition(IndicatorState.ALERT)
        self.reminderRaised.emit(event, minutes_until)

    def shutdown(self) -> None:
        """Cancel pending countdowns without announcing a transition."""
        self._active_countdown.cancel()
        self._alert_countdown.cancel()

    def _on_active_expired(self) -> None:
        if self._state is IndicatorState.ACTIVE:
            self._transition(IndicatorState.IDLE)

    def _on_alert_expired(self) -> None:
        # Activity seen during the alert is not replayed; Idle is the documented outcome.
        self._transition(IndicatorState.IDLE)

    def _transition(self, new_state: IndicatorState) -> None:
        if new_state is self._state:
            return
        previous = self._state
        self._state = new_state
        self._logger.debug("Indicator {} -> {}", previous.value, new_state.value)
        self.stateChanged.emit(new_state)
