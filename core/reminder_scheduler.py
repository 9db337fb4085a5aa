"""
Periodic calendar polling with threshold-based, deduplicated reminders.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from PySide6.QtCore import QObject, Signal

from core.calendar_source import SourceUnavailable
from core.poll_worker import PollOutcome, QtPollRunner
from shared.calendar_event import UpcomingEvent
from shared.event_schema import MalformedEvent
from menubar_pup.menubar_pup import logger as app_logger

DEFAULT_POLL_INTERVAL_MS = 5 * 60 * 1000
DEFAULT_LOOKAHEAD = timedelta(hours=24)
DEFAULT_THRESHOLD_MINUTES = 15
DEFAULT_RETENTION_MS = 60 * 60 * 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler(QObject):
    """
    Polls a calendar port on a fixed interval and emits ``reminderDue`` for
    events starting within the threshold.

    Each event id reminds at most once per retention window: the id is kept in
    the notified map until a one-shot eviction timer removes it, whatever
    happens to the event afterwards. Polls never overlap; a tick that finds
    the previous query still running is skipped.
    """

    reminderDue = Signal(object, int)

    def __init__(
        self,
        source,
        timers,
        *,
        runner=None,
        clock: Callable[[], datetime] = _utcnow,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        lookahead: timedelta = DEFAULT_LOOKAHEAD,
        threshold_minutes: int = DEFAULT_THRESHOLD_MINUTES,
        retention_ms: int = DEFAULT_RETENTION_MS,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = app_logger.get_logger()
        self.source = source
        self._timers = timers
        self._runner = runner or QtPollRunner(parent=self)
        self._clock = clock
        self.poll_interval_ms = poll_interval_ms
        self.lookahead = lookahead
        self.threshold_minutes = threshold_minutes
        self.retention_ms = retention_ms

        self._poll_timer = None
        self._poll_in_flight = False
        # Bumped by stop() so results from an abandoned poll are discarded.
        self._generation = 0
        self._notified: Dict[str, datetime] = {}
        self._evictions: Dict[str, object] = {}

    @property
    def is_running(self) -> bool:
        return self._poll_timer is not None

    @property
    def poll_in_flight(self) -> bool:
        return self._poll_in_flight

    def on_reminder(self, subscriber: Callable[[UpcomingEvent, int], None]) -> None:
        self.reminderDue.connect(subscriber)

    def is_notified(self, event_id: str) -> bool:
        return event_id in self._notified

    def notified_count(self) -> int:
        return len(self._notified)

    def start(self) -> None:
        if self.is_running:
            return
        self._logger.info(
            "Starting calendar polling every {}s (threshold {} min).",
            self.poll_interval_ms // 1000,
            self.threshold_minutes,
        )
        self._poll_timer = self._timers.call_every(self.poll_interval_ms, self.poll_now)
        self.poll_now()

    def stop(self) -> None:
        """
        Cancel polling and forget reminder history. A query already running
        is not interrupted; its result is dropped when it arrives.
        """
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()
        self._notified.clear()
        # An abandoned query keeps the port busy until its result comes back.
        self._generation += 1
        self._logger.info("Calendar polling stopped; reminder history cleared.")

    def poll_now(self) -> bool:
        """Run one poll cycle. Returns False when skipped because one is in flight."""
        return self._submit(self._fetch_window, only_next=False)

    def check_next(self) -> bool:
        """One-off check of the single next event, used at startup."""
        return self._submit(self._fetch_next, only_next=True)

    def _submit(self, fetch: Callable[[], List[UpcomingEvent]], *, only_next: bool) -> bool:
        if self._poll_in_flight:
            self._logger.debug("Previous calendar poll still running; skipping this tick.")
            return False
        self._poll_in_flight = True
        generation = self._generation
        self._runner.submit(
            fetch,
            lambda outcome: self._on_poll_finished(outcome, generation, only_next),
        )
        return True

    def _fetch_window(self) -> List[UpcomingEvent]:
        window_start = self._clock()
        return self.source.list_upcoming_events(window_start, window_start + self.lookahead)

    def _fetch_next(self) -> List[UpcomingEvent]:
        window_start = self._clock()
        event = self.source.next_event(window_start, window_start + self.lookahead)
        return [event] if event is not None else []

    def _on_poll_finished(self, outcome: PollOutcome, generation: int, only_next: bool) -> None:
        self._poll_in_flight = False
        if generation != self._generation:
            self._logger.debug("Discarding calendar result from a stopped scheduler.")
            if self.is_running:
                # start() skipped its first poll while the old query was out.
                self.poll_now()
            return

        if not outcome.ok:
            if isinstance(outcome.error, SourceUnavailable):
                self._logger.warning("Calendar unavailable this cycle: {}", outcome.error)
            else:
                self._logger.opt(exception=outcome.error).error("Calendar poll failed unexpectedly.")
            return

        events = outcome.events[:1] if only_next else outcome.events
        self._process_events(events)

    def _process_events(self, events: List[UpcomingEvent]) -> None:
        now = self._clock()
        for event in events:
            try:
                minutes_until = event.minutes_until(now)
            except (MalformedEvent, AttributeError, TypeError) as exc:
                self._logger.warning("Skipping event without a usable start: {}", exc)
                continue

            if not 0 < minutes_until <= self.threshold_minutes:
                continue
            if event.id in self._notified:
                continue

            self._notified[event.id] = now
            self._evictions[event.id] = self._timers.call_later(
                self.retention_ms, lambda event_id=event.id: self._evict(event_id)
            )
            self._logger.info("Reminder for {!r} ({} min).", event.title, minutes_until)
            self.reminderDue.emit(event, minutes_until)

    def _evict(self, event_id: str) -> None:
        self._evictions.pop(event_id, None)
        if self._notified.pop(event_id, None) is not None:
            self._logger.debug("Reminder history for {} expired.", event_id)
