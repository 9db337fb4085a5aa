"""
System tray presentation of the indicator state and calendar reminders.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple

from PySide6.QtCore import QObject, QRect, Qt, Signal
from PySide6.QtGui import QFont, QIcon, QPainter, QPixmap
from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon

from core.indicator import IndicatorState
from core.timers import Countdown
from shared.calendar_event import REMINDER_TITLE, UpcomingEvent, reminder_message
from menubar_pup.menubar_pup import logger as app_logger

try:
    import winsound
except ModuleNotFoundError:  # pragma: no cover - non-Windows environments
    winsound = None

TOOLTIP = "Menubar Pup - I run when you type!"
SITTING_GLYPH = "🐕"
RUNNING_FRAMES = ("🏃🐕", "🐕‍🦺")
ALERT_GLYPH = "🔔"
GREETING_TEXT = "Hi!"
PET_TEXT = "❤️"
ANIMATION_INTERVAL_MS = 500
FLASH_MS = 2000
REMINDER_MESSAGE_MS = 10_000
ICON_SIZE = 64


def frames_for(state: IndicatorState) -> Tuple[str, ...]:
    """Glyph frames shown for a state; more than one frame means animate."""
    if state is IndicatorState.ACTIVE:
        return RUNNING_FRAMES
    if state is IndicatorState.ALERT:
        return (ALERT_GLYPH,)
    return (SITTING_GLYPH,)


def glyph_icon(text: str, size: int = ICON_SIZE) -> QIcon:
    pixmap = QPixmap(size, size)
    pixmap.fill(Qt.GlobalColor.transparent)
    painter = QPainter(pixmap)
    try:
        font = QFont()
        # Two-glyph frames need a smaller point size to fit the square.
        font.setPixelSize(int(size * (0.8 if len(text) <= 2 else 0.45)))
        painter.setFont(font)
        painter.drawText(QRect(0, 0, size, size), Qt.AlignmentFlag.AlignCenter, text)
    finally:
        painter.end()
    return QIcon(pixmap)


class TrayRenderer(QObject):
    """
    Draws the pup in the tray. Subscribes to the controller's state and
    reminder signals; never changes indicator state itself.
    """

    clicked = Signal()

    def __init__(
        self,
        timers,
        *,
        notifications_enabled: bool = True,
        sound_enabled: bool = True,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = app_logger.get_logger()
        self._timers = timers
        self.notifications_enabled = notifications_enabled
        self.sound_enabled = sound_enabled
        self._state = IndicatorState.IDLE
        self._frames: Tuple[str, ...] = frames_for(self._state)
        self._frame_index = 0
        self._animation = None
        self._glyph = ""
        self._flash = Countdown("flash", timers)

        self._tray = QSystemTrayIcon(self)
        self._tray.setToolTip(TOOLTIP)
        self._tray.activated.connect(self._on_activated)
        self._apply_glyph(self._frames[0])

    @property
    def current_glyph(self) -> str:
        return self._glyph

    @property
    def is_animating(self) -> bool:
        return self._animation is not None

    def set_menu(self, menu: QMenu) -> None:
        self._tray.setContextMenu(menu)

    def show(self) -> None:
        if not QSystemTrayIcon.isSystemTrayAvailable():
            self._logger.warning("System tray is not available; the pup will be invisible.")
        self._tray.show()

    def hide(self) -> None:
        self._stop_animation()
        self._flash.cancel()
        self._tray.hide()

    def render_state(self, state: IndicatorState) -> None:
        self._state = state
        if self._flash.is_running:
            return
        self._start_frames(frames_for(state))

    def greet(self) -> None:
        self.flash(GREETING_TEXT)

    def pet(self) -> None:
        self.flash(PET_TEXT)

    def flash(self, text: str, duration_ms: int = FLASH_MS) -> None:
        """Show ``text`` briefly, then restore the glyph of the current state."""
        self._stop_animation()
        self._apply_glyph(text, tooltip=f"{SITTING_GLYPH} {text}")
        self._flash.restart(duration_ms, self._end_flash)

    def notify_reminder(self, event: UpcomingEvent, minutes_until: int) -> None:
        message = reminder_message(event, minutes_until)
        self._logger.info("Notification sent: {}", message)
        if not self.notifications_enabled:
            return
        self._tray.showMessage(
            REMINDER_TITLE,
            message,
            QSystemTrayIcon.MessageIcon.Information,
            REMINDER_MESSAGE_MS,
        )
        self._play_sound()

    def _end_flash(self) -> None:
        self._start_frames(frames_for(self._state))

    def _start_frames(self, frames: Tuple[str, ...]) -> None:
        if frames == self._frames and (len(frames) == 1 or self._animation is not None):
            self._apply_glyph(frames[self._frame_index % len(frames)])
            return
        self._stop_animation()
        self._frames = frames
        self._frame_index = 0
        self._apply_glyph(frames[0])
        if len(frames) > 1:
            self._animation = self._timers.call_every(ANIMATION_INTERVAL_MS, self._next_frame)

    def _next_frame(self) -> None:
        self._frame_index = (self._frame_index + 1) % len(self._frames)
        self._apply_glyph(self._frames[self._frame_index])

    def _stop_animation(self) -> None:
        if self._animation is not None:
            self._animation.cancel()
            self._animation = None

    def _apply_glyph(self, text: str, *, tooltip: str = TOOLTIP) -> None:
        self._glyph = text
        self._tray.setIcon(glyph_icon(text))
        self._tray.setToolTip(tooltip)

    def _on_activated(self, reason: QSystemTrayIcon.ActivationReason) -> None:
        if reason == QSystemTrayIcon.ActivationReason.Trigger:
            self.clicked.emit()

    def _play_sound(self) -> None:
        if not self.sound_enabled:
            self._logger.debug("Sound playback suppressed by setting.")
            return
        if winsound is None:
            QApplication.beep()
            return

        sound_path = Path(os.environ.get("WINDIR", "C:\\Windows")) / "Media" / "Windows Notify Calendar.wav"
        if not sound_path.exists():
            self._logger.warning("Calendar notification sound not found at {}", sound_path)
            return

        try:
            winsound.PlaySound(str(sound_path), winsound.SND_FILENAME | winsound.SND_ASYNC)
        except RuntimeError as exc:  # pragma: no cover - difficult to simulate
            self._logger.error("Failed to play notification sound: {}", exc)
