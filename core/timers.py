"""
Qt-backed timer facility and the single-slot countdown used by the indicator.
"""

from __future__ import annotations

from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer


class TimerFault(RuntimeError):
    """Raised when a timer cannot be scheduled. The pup cannot run without timers."""


class TimerHandle:
    """Cancellable reference to a scheduled QTimer callback."""

    def __init__(self, timer: QTimer, callback: Callable[[], None], *, repeating: bool) -> None:
        self._timer = timer
        self._callback = callback
        self._repeating = repeating
        self._active = True
        timer.timeout.connect(self._fire)  # type: ignore[arg-type]

    @property
    def is_active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._timer.stop()
        self._timer.deleteLater()

    def _fire(self) -> None:
        if not self._active:
            return
        if not self._repeating:
            self._active = False
            self._timer.deleteLater()
        self._callback()


class QtTimerFacility:
    """
    Schedules callbacks on the Qt event loop of the calling thread.

    Timers are parented to ``parent`` so they die with the owning object.
    Delays are in milliseconds and honour Qt's at-least-the-requested-delay
    guarantee; callbacks fire in expiry order on the loop thread.
    """

    def __init__(self, parent: Optional[QObject] = None) -> None:
        self._parent = parent

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        return self._schedule(delay_ms, callback, repeating=False)

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        return self._schedule(interval_ms, callback, repeating=True)

    def _schedule(self, delay_ms: int, callback: Callable[[], None], *, repeating: bool) -> TimerHandle:
        if delay_ms < 0:
            raise TimerFault(f"Timer delay must be non-negative, got {delay_ms} ms.")
        timer = QTimer(self._parent)
        timer.setSingleShot(not repeating)
        timer.setInterval(int(delay_ms))
        handle = TimerHandle(timer, callback, repeating=repeating)
        timer.start()
        if not timer.isActive():
            # QTimer refuses to start outside a thread with an event dispatcher.
            handle.cancel()
            raise TimerFault("Qt timer failed to start; no event loop is available.")
        return handle


class Countdown:
    """
    A named one-shot timer slot. Restarting discards the pending timer first,
    so at most one countdown per slot is ever live.
    """

    def __init__(self, name: str, timers) -> None:
        self.name = name
        self._timers = timers
        self._handle = None

    @property
    def is_running(self) -> bool:
        return self._handle is not None and self._handle.is_active

    def restart(self, delay_ms: int, on_expiry: Callable[[], None]) -> None:
        self.cancel()

        def _expire() -> None:
            self._handle = None
            on_expiry()

        self._handle = self._timers.call_later(delay_ms, _expire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
