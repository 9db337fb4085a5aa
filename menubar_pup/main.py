"""
Entry point for the menubar pup tray application.
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Iterable, Optional, Tuple

from PySide6.QtCore import QDir, QLockFile
from PySide6.QtWidgets import QApplication

from core.app import APP_NAME, AppCoordinator
from core.timers import TimerFault
from menubar_pup.menubar_pup import logger as app_logger

_LOGGER = app_logger.get_logger()
_LOCK_NAME = "menubar-pup.lock"
EXIT_TIMER_FAULT = 3


class _InstanceGuard:
    """Lock-file guard preventing two pups in the same session."""

    def __init__(self, path: Path) -> None:
        self._lock = QLockFile(str(path))
        self._lock.setStaleLockTime(0)

    def acquire(self) -> bool:
        return self._lock.tryLock(100)

    def release(self) -> None:
        if self._lock.isLocked():
            self._lock.unlock()


class _FaultHook:
    """
    Exception hook for errors raised inside Qt slots. A TimerFault stops the
    event loop with a dedicated exit code; anything else is only logged.
    """

    def __init__(self, app: QApplication) -> None:
        self._app = app
        self.timer_fault: Optional[BaseException] = None

    def __call__(self, exc_type, exc_value, exc_traceback) -> None:
        _LOGGER.opt(exception=(exc_type, exc_value, exc_traceback)).error("Unhandled error in event loop.")
        if issubclass(exc_type, TimerFault):
            self.timer_fault = exc_value
            self._app.exit(EXIT_TIMER_FAULT)


def _run_application_once(argv: Iterable[str]) -> Tuple[int, bool]:
    """Start the Qt application once and report whether it should stay down."""
    app = QApplication.instance() or QApplication(list(argv))
    app.setApplicationName(APP_NAME)
    app.setQuitOnLastWindowClosed(False)

    hook = _FaultHook(app)
    previous_hook = sys.excepthook
    sys.excepthook = hook
    try:
        coordinator = AppCoordinator()
        coordinator.start()
        exit_code = app.exec()
    finally:
        sys.excepthook = previous_hook

    if hook.timer_fault is not None:
        raise hook.timer_fault
    return exit_code, coordinator.manual_shutdown_requested


def main() -> int:
    """Launch the pup with single-instance and recovery safeguards."""
    guard = _InstanceGuard(Path(QDir.tempPath()) / _LOCK_NAME)
    if not guard.acquire():
        _LOGGER.debug("{} is already running; exiting silently.", APP_NAME)
        return 0

    backoff_seconds = 2
    max_backoff = 30

    try:
        while True:
            try:
                exit_code, manual = _run_application_once(sys.argv)
            except TimerFault:
                _LOGGER.exception("Timers are unavailable; the pup cannot run.")
                return EXIT_TIMER_FAULT
            except Exception:  # crash guard around the whole app
                _LOGGER.exception("Pup crashed; attempting automatic recovery.")
                exit_code = 1
                manual = False

            if manual:
                return exit_code

            _LOGGER.warning(
                "Pup exited unexpectedly (code={}). Restarting in {} seconds.",
                exit_code,
                backoff_seconds,
            )
            time.sleep(backoff_seconds)
            backoff_seconds = min(backoff_seconds * 2, max_backoff)
    finally:
        guard.release()


if __name__ == "__main__":
    raise SystemExit(main())
