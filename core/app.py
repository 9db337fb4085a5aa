"""
Application coordinator wiring activity, calendar and tray together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QObject
from PySide6.QtGui import QAction
from PySide6.QtWidgets import QApplication, QMenu

from core.activity_monitor import ActivityMonitor
from core.calendar_source import DEFAULT_TOKEN_PATH, GoogleCalendarSource
from core.indicator import IndicatorStateController
from core.poll_worker import QtPollRunner
from core.reminder_scheduler import ReminderScheduler
from core.settings import PupSettings, PupSettingsManager
from core.timers import QtTimerFacility
from core.tray_renderer import TrayRenderer
from menubar_pup.menubar_pup import logger as app_logger

APP_NAME = "Menubar Pup"
APP_VERSION = "1.0.0"


@dataclass
class AppCoordinator(QObject):
    token_path: Path = field(default_factory=lambda: DEFAULT_TOKEN_PATH)
    settings_manager: PupSettingsManager = field(default_factory=PupSettingsManager)
    timers: Optional[QtTimerFacility] = None
    calendar: Optional[GoogleCalendarSource] = None
    poll_runner: Optional[QtPollRunner] = None

    def __post_init__(self) -> None:
        super().__init__()
        self._logger = app_logger.get_logger()
        self._manual_shutdown_requested = False
        # Settings are fixed for the lifetime of the process.
        self._settings: PupSettings = self.settings_manager.read_settings()
        settings = self._settings

        self._timers = self.timers if self.timers is not None else QtTimerFacility(self)
        self.controller = IndicatorStateController(
            self._timers,
            active_duration_ms=settings.active_seconds * 1000,
            alert_duration_ms=settings.alert_seconds * 1000,
            parent=self,
        )
        self.activity = ActivityMonitor(self._timers, simulate=settings.simulate_activity, parent=self)
        if self.calendar is None:
            self.calendar = GoogleCalendarSource(self.token_path)
        self.scheduler = ReminderScheduler(
            self.calendar,
            self._timers,
            runner=self.poll_runner,
            poll_interval_ms=settings.poll_interval_seconds * 1000,
            lookahead=timedelta(hours=settings.lookahead_hours),
            threshold_minutes=settings.reminder_threshold_minutes,
            retention_ms=settings.retention_minutes * 60 * 1000,
            parent=self,
        )
        self.renderer = TrayRenderer(
            self._timers,
            notifications_enabled=settings.notifications_enabled,
            sound_enabled=settings.sound_enabled,
            parent=self,
        )

        self.activity.on_activity(self.controller.report_activity)
        self.scheduler.on_reminder(self.controller.report_reminder)
        self.controller.on_change(self.renderer.render_state)
        self.controller.on_reminder(self.renderer.notify_reminder)
        self.renderer.clicked.connect(self.renderer.greet)

        self._menu = self._build_menu()
        self.renderer.set_menu(self._menu)

    def _build_menu(self) -> QMenu:
        menu = QMenu()
        pet_action = QAction("Pet the dog 🐾", menu)
        run_action = QAction("Make dog run", menu)
        self.refresh_action = QAction("Check calendar now", menu)
        self.disconnect_action = QAction("Disconnect calendar", menu)
        exit_action = QAction("Quit", menu)

        menu.addAction(pet_action)
        menu.addAction(run_action)
        menu.addSeparator()
        menu.addAction(self.refresh_action)
        menu.addAction(self.disconnect_action)
        menu.addSeparator()
        menu.addAction(exit_action)

        pet_action.triggered.connect(self.renderer.pet)
        run_action.triggered.connect(self.controller.report_activity)
        self.refresh_action.triggered.connect(self._manual_refresh)
        self.disconnect_action.triggered.connect(self.disconnect_calendar)
        exit_action.triggered.connect(self.shutdown)
        return menu

    def start(self) -> None:
        self._logger.info("Starting {} v{}.", APP_NAME, APP_VERSION)
        self.renderer.show()
        self.activity.start()

        if not self._settings.calendar_enabled:
            self._logger.info("Calendar reminders disabled by setting.")
        elif self.calendar.is_authenticated():
            self.scheduler.start()
        else:
            self._logger.info("No calendar token at {}; reminders are off.", self.token_path)
        self._update_calendar_actions()

    def shutdown(self) -> None:
        self._logger.info("Shutting down on user request.")
        self._manual_shutdown_requested = True
        self.scheduler.stop()
        self.activity.stop()
        self.controller.shutdown()
        self.renderer.hide()
        instance: Optional[QApplication] = QApplication.instance()
        if instance is not None:
            instance.quit()

    @property
    def manual_shutdown_requested(self) -> bool:
        return self._manual_shutdown_requested

    def disconnect_calendar(self) -> None:
        self.scheduler.stop()
        self.calendar.disconnect()
        self._update_calendar_actions()

    def _manual_refresh(self) -> None:
        if not self.scheduler.is_running:
            self._logger.debug("Manual calendar check ignored; polling is not running.")
            return
        self._logger.info("Manual calendar check triggered from tray menu.")
        self.scheduler.poll_now()

    def _update_calendar_actions(self) -> None:
        running = self.scheduler.is_running
        self.refresh_action.setEnabled(running)
        self.disconnect_action.setEnabled(running)
