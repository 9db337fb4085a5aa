"""
Google Calendar implementation of the calendar query port.

Only reads events. Obtaining the OAuth token is handled elsewhere; this module
loads a previously stored authorized-user token and refreshes it when needed.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from shared.calendar_event import UpcomingEvent
from shared.event_schema import MalformedEvent
from menubar_pup.menubar_pup import logger as app_logger

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]
DEFAULT_TOKEN_PATH = Path(
    os.environ.get(
        "MENUBAR_PUP_TOKEN",
        str(Path.home() / ".menubar_pup" / "token.json"),
    )
)
DEFAULT_MAX_RESULTS = 10
DEFAULT_TIMEOUT_SECONDS = 20


class SourceUnavailable(RuntimeError):
    """The calendar could not be reached, authenticated, or returned garbage."""


class GoogleCalendarSource:
    """
    Lists upcoming events from the user's primary calendar.

    ``service_factory`` receives the loaded credentials and returns a Calendar
    v3 service; tests pass a fake here to avoid the network.
    """

    def __init__(
        self,
        token_path: Path = DEFAULT_TOKEN_PATH,
        *,
        calendar_id: str = "primary",
        max_results: int = DEFAULT_MAX_RESULTS,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        service_factory: Optional[Callable[[Credentials], Any]] = None,
    ) -> None:
        self._logger = app_logger.get_logger()
        self.token_path = Path(token_path)
        self.calendar_id = calendar_id
        self.max_results = max_results
        self.timeout_seconds = timeout_seconds
        self._service_factory = service_factory or self._build_service
        self._service = None

    def is_authenticated(self) -> bool:
        return self._service is not None or self.token_path.exists()

    def list_upcoming_events(self, window_start: datetime, window_end: datetime) -> List[UpcomingEvent]:
        return self._list_events(window_start, window_end, self.max_results)

    def next_event(self, window_start: datetime, window_end: datetime) -> Optional[UpcomingEvent]:
        events = self._list_events(window_start, window_end, 1)
        return events[0] if events else None

    def disconnect(self) -> None:
        """Drop the cached service and forget the stored token."""
        self._service = None
        try:
            self.token_path.unlink(missing_ok=True)
        except OSError as exc:
            self._logger.error("Failed to remove stored token {}: {}", self.token_path, exc)
            return
        self._logger.info("Calendar disconnected; stored token removed.")

    def _list_events(self, window_start: datetime, window_end: datetime, max_results: int) -> List[UpcomingEvent]:
        service = self._get_service()
        try:
            response = (
                service.events()
                .list(
                    calendarId=self.calendar_id,
                    timeMin=_rfc3339(window_start),
                    timeMax=_rfc3339(window_end),
                    maxResults=max_results,
                    singleEvents=True,
                    orderBy="startTime",
                )
                .execute()
            )
        except HttpError as exc:
            if getattr(exc.resp, "status", None) in (401, 403):
                self._service = None
            raise SourceUnavailable(f"Calendar API request failed: {exc}") from exc
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as exc:
            self._service = None
            raise SourceUnavailable(f"Calendar API unreachable: {exc}") from exc

        if not isinstance(response, dict):
            raise SourceUnavailable("Calendar API returned a non-object response.")
        items = response.get("items") or []
        if not isinstance(items, list):
            raise SourceUnavailable("Calendar API response 'items' is not a list.")

        events: List[UpcomingEvent] = []
        for item in items:
            try:
                events.append(UpcomingEvent.from_payload(item))
            except MalformedEvent as exc:
                self._logger.warning("Dropping malformed calendar event: {}", exc)
        return events

    def _get_service(self):
        if self._service is not None:
            return self._service
        credentials = self._load_credentials()
        self._service = self._service_factory(credentials)
        return self._service

    def _load_credentials(self) -> Credentials:
        if not self.token_path.exists():
            raise SourceUnavailable(f"No stored calendar token at {self.token_path}.")
        try:
            credentials = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
        except (OSError, ValueError) as exc:
            raise SourceUnavailable(f"Stored calendar token is unreadable: {exc}") from exc

        if not credentials.valid and credentials.refresh_token:
            try:
                credentials.refresh(Request())
            except GoogleAuthError as exc:
                raise SourceUnavailable(f"Failed to refresh calendar token: {exc}") from exc
            self._save_credentials(credentials)
        if not credentials.valid:
            raise SourceUnavailable("Stored calendar token is no longer valid.")
        return credentials

    def _save_credentials(self, credentials: Credentials) -> None:
        try:
            self.token_path.write_text(credentials.to_json(), encoding="utf-8")
        except OSError as exc:
            self._logger.warning("Could not persist refreshed token: {}", exc)

    def _build_service(self, credentials: Credentials):
        http = google_auth_httplib2.AuthorizedHttp(
            credentials, http=httplib2.Http(timeout=self.timeout_seconds)
        )
        # cache_discovery=False avoids writing the discovery cache to disk
        return build("calendar", "v3", http=http, cache_discovery=False)


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
