"""
User activity detection from OS idle time, with a simulated fallback.

Only the fact that input happened is observed; key contents are never read.
"""

from __future__ import annotations

import ctypes
import random
import sys
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal

from menubar_pup.menubar_pup import logger as app_logger

DEFAULT_SAMPLE_INTERVAL_MS = 250
SIMULATION_INTERVAL_MS = 2000
SIMULATION_PROBABILITY = 0.15


class ActivityMonitor(QObject):
    """
    Samples system idle time and emits ``activityDetected`` whenever input
    occurred since the previous sample.

    When real idle time cannot be read (non-Windows, or the query fails) the
    monitor switches to simulation: every two seconds there is a 15% chance
    of a synthetic activity edge.
    """

    activityDetected = Signal()

    def __init__(
        self,
        timers,
        *,
        sample_interval_ms: int = DEFAULT_SAMPLE_INTERVAL_MS,
        simulate: Optional[bool] = None,
        rng: Optional[random.Random] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = app_logger.get_logger()
        self._timers = timers
        self.sample_interval_ms = sample_interval_ms
        self._simulate = (sys.platform != "win32") if simulate is None else simulate
        self._rng = rng or random.Random()
        self._handle = None
        self._idle_seconds_provider: Optional[Callable[[], float]] = None

    @property
    def simulated(self) -> bool:
        return self._simulate

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def on_activity(self, callback: Callable[[], None]) -> None:
        self.activityDetected.connect(callback)

    def set_idle_seconds_provider(self, provider: Callable[[], float]) -> None:
        """
        Override idle seconds acquisition. Primarily used for testing.
        """
        self._idle_seconds_provider = provider
        self._simulate = False

    def start(self) -> None:
        """Begin watching for activity."""
        if self._handle is not None:
            return
        if self._simulate:
            self._logger.info("Using simulated activity detection.")
            self._handle = self._timers.call_every(SIMULATION_INTERVAL_MS, self._simulate_tick)
        else:
            self._logger.info("Real activity detection enabled.")
            self._handle = self._timers.call_every(self.sample_interval_ms, self._sample)

    def stop(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None

    def _sample(self) -> None:
        try:
            idle_seconds = self._get_idle_seconds()
        except (OSError, AttributeError) as exc:
            self._logger.warning("Idle time unavailable ({}); falling back to simulation.", exc)
            self.stop()
            self._simulate = True
            self.start()
            return

        # Input within the last sample period means a fresh edge.
        if idle_seconds * 1000 < self.sample_interval_ms:
            self.activityDetected.emit()

    def _simulate_tick(self) -> None:
        if self._rng.random() < SIMULATION_PROBABILITY:
            self.activityDetected.emit()

    def _get_idle_seconds(self) -> float:
        if self._idle_seconds_provider is not None:
            return self._idle_seconds_provider()

        last_input_info = _get_last_input_info()
        tick_count_ms = _get_tick_count_ms()
        idle_ms = (tick_count_ms - last_input_info) & 0xFFFFFFFF
        return idle_ms / 1000.0


def _get_last_input_info() -> int:
    class LASTINPUTINFO(ctypes.Structure):
        _fields_ = [("cbSize", ctypes.c_uint), ("dwTime", ctypes.c_uint)]

    user32 = ctypes.windll.user32  # type: ignore[attr-defined]
    last_input = LASTINPUTINFO()
    last_input.cbSize = ctypes.sizeof(LASTINPUTINFO)

    if not user32.GetLastInputInfo(ctypes.byref(last_input)):
        raise ctypes.WinError()

    return last_input.dwTime


def _get_tick_count_ms() -> int:
    # GetLastInputInfo reports a 32-bit tick, so compare against the 32-bit counter.
    kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
    return int(kernel32.GetTickCount())
