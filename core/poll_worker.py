"""
Runs calendar queries off the GUI thread and hands results back to the event loop.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Qt, Signal, Slot

from shared.calendar_event import UpcomingEvent


@dataclass(slots=True)
class PollOutcome:
    events: List[UpcomingEvent] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_fetch(fetch: Callable[[], Sequence[UpcomingEvent]]) -> PollOutcome:
    """Call ``fetch`` and fold any exception into the outcome."""
    try:
        return PollOutcome(events=list(fetch() or []))
    except Exception as exc:  # the worker thread must never die with the error
        return PollOutcome(error=exc)


class _PollRelay(QObject):
    finished = Signal(int, object)


class _PollTask(QRunnable):
    def __init__(self, token: int, fetch: Callable[[], Sequence[UpcomingEvent]], relay: _PollRelay) -> None:
        super().__init__()
        self._token = token
        self._fetch = fetch
        self._relay = relay

    def run(self) -> None:
        self._relay.finished.emit(self._token, run_fetch(self._fetch))


class QtPollRunner(QObject):
    """
    Submits fetch callables to a QThreadPool. ``on_done(outcome)`` is always
    invoked on the thread that owns the runner, via a queued connection.
    """

    def __init__(self, pool: Optional[QThreadPool] = None, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._relay = _PollRelay(self)
        self._relay.finished.connect(self._deliver, Qt.ConnectionType.QueuedConnection)
        self._tokens = itertools.count(1)
        self._pending: Dict[int, Tuple[Callable[[PollOutcome], None], _PollTask]] = {}

    def submit(
        self,
        fetch: Callable[[], Sequence[UpcomingEvent]],
        on_done: Callable[[PollOutcome], None],
    ) -> None:
        token = next(self._tokens)
        task = _PollTask(token, fetch, self._relay)
        # Python keeps ownership until the result is delivered.
        task.setAutoDelete(False)
        self._pending[token] = (on_done, task)
        self._pool.start(task)

    @Slot(int, object)
    def _deliver(self, token: int, outcome: PollOutcome) -> None:
        entry = self._pending.pop(token, None)
        if entry is not None:
            callback, _task = entry
            callback(outcome)
