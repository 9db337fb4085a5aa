"""
Shared representation of an upcoming calendar event and its reminder text.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .event_schema import ensure_aware, parse_event_payload

REMINDER_TITLE = "🐕 Calendar Reminder"


@dataclass(frozen=True, slots=True)
class UpcomingEvent:
    """
    An event returned by the calendar port. Instances are replaced on every
    poll and never mutated.
    """

    id: str
    title: str
    start: datetime
    end: datetime
    location: Optional[str] = None

    @classmethod
    def from_payload(cls, raw_event: Dict[str, Any]) -> "UpcomingEvent":
        """Build an event from a raw Calendar API item, raising MalformedEvent."""
        return cls(**parse_event_payload(raw_event))

    def minutes_until(self, now: datetime) -> int:
        """Whole minutes from ``now`` until the start, floored."""
        start = ensure_aware(self.start, field=f"start of {self.id}")
        seconds = (start - now).total_seconds()
        return math.floor(seconds / 60)


def reminder_message(event: UpcomingEvent, minutes_until: int) -> str:
    suffix = "" if minutes_until == 1 else "s"
    return f"{event.title} starts in {minutes_until} minute{suffix}"
