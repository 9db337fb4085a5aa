from __future__ import annotations

import itertools
import json
import os
from datetime import datetime, timedelta, timezone

# Tray and menu objects need a GUI application; render without a display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtWidgets import QApplication

from core.poll_worker import run_fetch

BASE_TIME = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


class FakeHandle:
    def __init__(self, timers: "FakeTimers", due_ms: int, callback, interval_ms: int | None) -> None:
        self._timers = timers
        self.due_ms = due_ms
        self.callback = callback
        self.interval_ms = interval_ms
        self.seq = next(timers._seq)
        self.is_active = True

    def cancel(self) -> None:
        self.is_active = False


class FakeTimers:
    """Deterministic timer facility: nothing fires until ``advance`` is called."""

    def __init__(self) -> None:
        self.now_ms = 0
        self._seq = itertools.count()
        self._handles: list[FakeHandle] = []

    def call_later(self, delay_ms: int, callback) -> FakeHandle:
        handle = FakeHandle(self, self.now_ms + delay_ms, callback, None)
        self._handles.append(handle)
        return handle

    def call_every(self, interval_ms: int, callback) -> FakeHandle:
        handle = FakeHandle(self, self.now_ms + interval_ms, callback, interval_ms)
        self._handles.append(handle)
        return handle

    def active_count(self) -> int:
        return sum(1 for h in self._handles if h.is_active)

    def advance(self, ms: int) -> None:
        target = self.now_ms + ms
        while True:
            due = [h for h in self._handles if h.is_active and h.due_ms <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.due_ms, h.seq))
            self.now_ms = handle.due_ms
            if handle.interval_ms is None:
                handle.is_active = False
            else:
                handle.due_ms += handle.interval_ms
            handle.callback()
        self.now_ms = target
        self._handles = [h for h in self._handles if h.is_active]


class InlineRunner:
    """Runs the fetch immediately on the calling thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fetch, on_done) -> None:
        self.submitted += 1
        on_done(run_fetch(fetch))


class DeferredRunner:
    """Holds submitted fetches until ``complete_next`` is called."""

    def __init__(self) -> None:
        self.pending: list = []

    def submit(self, fetch, on_done) -> None:
        self.pending.append((fetch, on_done))

    def complete_next(self) -> None:
        fetch, on_done = self.pending.pop(0)
        on_done(run_fetch(fetch))


class FakeRequest:
    def __init__(self, outcome):
        self._outcome = outcome

    def execute(self):
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


class FakeEvents:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def list(self, **kwargs):
        self.calls.append(kwargs)
        return FakeRequest(self.outcome)


class FakeService:
    """Stands in for the ``calendar`` v3 discovery client."""

    def __init__(self, outcome):
        self._events = FakeEvents(outcome)

    def events(self):
        return self._events


def write_token(tmp_path):
    path = tmp_path / "token.json"
    expiry = (datetime.now(timezone.utc) + timedelta(hours=1)).strftime("%Y-%m-%dT%H:%M:%SZ")
    path.write_text(
        json.dumps(
            {
                "token": "access",
                "refresh_token": "refresh",
                "client_id": "client",
                "client_secret": "secret",
                "token_uri": "https://oauth2.googleapis.com/token",
                "expiry": expiry,
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def clock(timers):
    return lambda: BASE_TIME + timedelta(milliseconds=timers.now_ms)
