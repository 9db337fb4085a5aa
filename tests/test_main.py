import sys

import pytest
from PySide6.QtCore import QTimer

import menubar_pup.main as entry
from core.timers import TimerFault


class FakeGuard:
    available = True
    released = 0

    def __init__(self, path) -> None:
        self.path = path

    def acquire(self) -> bool:
        return FakeGuard.available

    def release(self) -> None:
        FakeGuard.released += 1


@pytest.fixture
def guard(monkeypatch):
    FakeGuard.available = True
    FakeGuard.released = 0
    monkeypatch.setattr(entry, "_InstanceGuard", FakeGuard)
    return FakeGuard


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr(entry.time, "sleep", recorded.append)
    return recorded


def _exec_with_deadline(app, timeout_ms=2000) -> int:
    deadline = QTimer()
    deadline.setSingleShot(True)
    deadline.timeout.connect(lambda: app.exit(-1))
    deadline.start(timeout_ms)
    try:
        return app.exec()
    finally:
        deadline.stop()


def test_timer_fault_in_a_slot_ends_the_loop_with_dedicated_code(qapp, monkeypatch):
    hook = entry._FaultHook(qapp)
    monkeypatch.setattr(sys, "excepthook", hook)

    def refuse():
        raise TimerFault("timer refused to start")

    QTimer.singleShot(0, refuse)
    code = _exec_with_deadline(qapp)

    assert code == entry.EXIT_TIMER_FAULT
    assert isinstance(hook.timer_fault, TimerFault)


def test_other_slot_errors_are_only_logged(qapp, monkeypatch):
    hook = entry._FaultHook(qapp)
    monkeypatch.setattr(sys, "excepthook", hook)

    def broken():
        raise ValueError("bad payload")

    QTimer.singleShot(0, broken)
    QTimer.singleShot(20, lambda: qapp.exit(7))
    code = _exec_with_deadline(qapp)

    assert code == 7
    assert hook.timer_fault is None


def test_timer_fault_is_not_restarted(guard, sleeps, monkeypatch):
    runs = []

    def run_once(argv):
        runs.append(argv)
        raise TimerFault("no timers")

    monkeypatch.setattr(entry, "_run_application_once", run_once)

    assert entry.main() == entry.EXIT_TIMER_FAULT
    assert len(runs) == 1
    assert sleeps == []
    assert guard.released == 1


def test_unexpected_exit_restarts_with_backoff(guard, sleeps, monkeypatch):
    outcomes = iter([(1, False), (1, False), (0, True)])
    monkeypatch.setattr(entry, "_run_application_once", lambda argv: next(outcomes))

    assert entry.main() == 0
    assert sleeps == [2, 4]
    assert guard.released == 1


def test_crash_is_recovered(guard, sleeps, monkeypatch):
    outcomes = iter([RuntimeError("boom"), (0, True)])

    def run_once(argv):
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(entry, "_run_application_once", run_once)

    assert entry.main() == 0
    assert sleeps == [2]


def test_second_instance_exits_quietly(guard, monkeypatch):
    guard.available = False
    monkeypatch.setattr(entry, "_run_application_once", lambda argv: pytest.fail("should not start"))

    assert entry.main() == 0
