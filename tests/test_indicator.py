from datetime import timedelta

from core.indicator import IndicatorState, IndicatorStateController
from shared.calendar_event import UpcomingEvent
from tests.conftest import BASE_TIME

ACTIVE_MS = 3_000
ALERT_MS = 30_000


def _controller(timers):
    return IndicatorStateController(timers, active_duration_ms=ACTIVE_MS, alert_duration_ms=ALERT_MS)


def _event(event_id="e1"):
    start = BASE_TIME + timedelta(minutes=10)
    return UpcomingEvent(id=event_id, title="Standup", start=start, end=start + timedelta(minutes=15))


def test_initial_state_is_idle(timers):
    assert _controller(timers).current_state() is IndicatorState.IDLE


def test_activity_reverts_to_idle_after_active_duration(timers):
    controller = _controller(timers)
    controller.report_activity()
    assert controller.current_state() is IndicatorState.ACTIVE

    timers.advance(ACTIVE_MS - 1)
    assert controller.current_state() is IndicatorState.ACTIVE
    timers.advance(1)
    assert controller.current_state() is IndicatorState.IDLE


def test_burst_resets_countdown_from_last_edge(timers):
    controller = _controller(timers)
    changes = []
    controller.on_change(changes.append)

    for _ in range(5):
        controller.report_activity()
        timers.advance(1_000)

    # last edge at t=4000, so Idle exactly at t=7000
    timers.advance(ACTIVE_MS - 1_000 - 1)
    assert controller.current_state() is IndicatorState.ACTIVE
    timers.advance(1)
    assert controller.current_state() is IndicatorState.IDLE
    assert changes == [IndicatorState.ACTIVE, IndicatorState.IDLE]
    assert timers.active_count() == 0


def test_reminder_preempts_active_countdown(timers):
    controller = _controller(timers)
    controller.report_activity()
    timers.advance(ACTIVE_MS - 1_000)

    controller.report_reminder(_event(), 10)
    assert controller.current_state() is IndicatorState.ALERT

    # the abandoned active countdown must not knock the alert down
    timers.advance(1_000)
    assert controller.current_state() is IndicatorState.ALERT
    timers.advance(ALERT_MS - 1_000 - 1)
    assert controller.current_state() is IndicatorState.ALERT
    timers.advance(1)
    assert controller.current_state() is IndicatorState.IDLE


def test_activity_is_ignored_while_alert(timers):
    controller = _controller(timers)
    controller.report_reminder(_event(), 10)
    changes = []
    controller.on_change(changes.append)

    for _ in range(10):
        controller.report_activity()
        timers.advance(1_000)
        assert controller.current_state() is IndicatorState.ALERT

    timers.advance(ALERT_MS - 10_000)
    assert controller.current_state() is IndicatorState.IDLE
    assert changes == [IndicatorState.IDLE]


def test_alert_expiry_returns_to_idle_even_after_activity_during_alert(timers):
    # Documented behaviour: activity swallowed during the alert is not replayed.
    controller = _controller(timers)
    controller.report_reminder(_event(), 10)
    timers.advance(ALERT_MS - 500)
    controller.report_activity()
    timers.advance(500)
    assert controller.current_state() is IndicatorState.IDLE


def test_new_reminder_restarts_alert_without_duplicate_state_change(timers):
    controller = _controller(timers)
    changes = []
    reminders = []
    controller.on_change(changes.append)
    controller.on_reminder(lambda event, minutes: reminders.append((event.id, minutes)))

    controller.report_reminder(_event("e1"), 10)
    timers.advance(20_000)
    controller.report_reminder(_event("e2"), 3)
    timers.advance(ALERT_MS - 1)
    assert controller.current_state() is IndicatorState.ALERT
    timers.advance(1)

    assert controller.current_state() is IndicatorState.IDLE
    assert changes == [IndicatorState.ALERT, IndicatorState.IDLE]
    assert reminders == [("e1", 10), ("e2", 3)]


def test_reminder_announces_state_before_payload(timers):
    controller = _controller(timers)
    seen = []
    controller.on_change(lambda state: seen.append(("state", state)))
    controller.on_reminder(lambda event, minutes: seen.append(("reminder", controller.current_state())))

    controller.report_reminder(_event(), 5)

    assert seen == [("state", IndicatorState.ALERT), ("reminder", IndicatorState.ALERT)]


def test_activity_after_alert_expiry_starts_new_active_period(timers):
    controller = _controller(timers)
    controller.report_reminder(_event(), 10)
    timers.advance(ALERT_MS)
    controller.report_activity()
    assert controller.current_state() is IndicatorState.ACTIVE
    timers.advance(ACTIVE_MS)
    assert controller.current_state() is IndicatorState.IDLE


def test_shutdown_cancels_countdowns_silently(timers):
    controller = _controller(timers)
    changes = []
    controller.report_activity()
    controller.on_change(changes.append)

    controller.shutdown()
    timers.advance(ACTIVE_MS * 2)

    assert changes == []
    assert timers.active_count() == 0
