"""
Calendar event payload validation shared by the calendar port and the scheduler.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Dict, Optional

DEFAULT_TITLE = "No title"


class MalformedEvent(ValueError):
    """Raised when an event payload lacks a usable identifier or start time."""


def parse_event_payload(raw_event: Any) -> Dict[str, Any]:
    """
    Normalise a Google Calendar ``events.list`` item.

    Returns a dictionary with ``id``, ``title``, ``start``, ``end`` and
    ``location`` keys. Start and end are timezone-aware UTC datetimes; all-day
    events (``date`` instead of ``dateTime``) start at local midnight.
    """
    if not isinstance(raw_event, dict):
        raise MalformedEvent("Event payload must be a JSON object.")

    event_id = raw_event.get("id")
    if not isinstance(event_id, str) or not event_id.strip():
        raise MalformedEvent("Event is missing an id.")

    start = _parse_event_time(raw_event.get("start"), field="start")
    if start is None:
        raise MalformedEvent(f"Event {event_id} has no usable start time.")

    end = _parse_event_time(raw_event.get("end"), field="end")
    if end is None:
        end = start

    title = raw_event.get("summary")
    if not isinstance(title, str) or not title.strip():
        title = DEFAULT_TITLE

    location = raw_event.get("location")
    if not isinstance(location, str) or not location.strip():
        location = None

    return {
        "id": event_id.strip(),
        "title": title.strip(),
        "start": start,
        "end": end,
        "location": location.strip() if location else None,
    }


def parse_iso8601(value: str, *, field: str = "start") -> datetime:
    """
    Parse an RFC 3339 timestamp as emitted by the Calendar API.

    Accepts ``Z`` suffixes and explicit offsets. Naive values are rejected
    because minutes-until arithmetic needs an absolute instant.
    """
    if not isinstance(value, str):
        raise MalformedEvent(f"{field} must be a string.")

    cleaned = value.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(cleaned)
    except ValueError as exc:
        raise MalformedEvent(f"{field} is not an ISO-8601 timestamp: {value!r}") from exc

    if parsed.tzinfo is None:
        raise MalformedEvent(f"{field} must include a timezone offset.")

    return parsed.astimezone(timezone.utc)


def ensure_aware(value: Any, *, field: str = "start") -> datetime:
    """Return ``value`` if it is a timezone-aware datetime, else raise."""
    if not isinstance(value, datetime) or value.tzinfo is None:
        raise MalformedEvent(f"{field} must be a timezone-aware datetime.")
    return value


def _parse_event_time(value: Any, *, field: str) -> Optional[datetime]:
    if not isinstance(value, dict):
        return None

    date_time = value.get("dateTime")
    if date_time:
        return parse_iso8601(date_time, field=field)

    all_day = value.get("date")
    if all_day:
        try:
            day = date.fromisoformat(str(all_day).strip())
        except ValueError as exc:
            raise MalformedEvent(f"{field} date is invalid: {all_day!r}") from exc
        # All-day dates are the user's calendar day, so they start at local
        # midnight, not UTC midnight.
        local_midnight = datetime.combine(day, time.min).astimezone()
        return local_midnight.astimezone(timezone.utc)

    return None
