from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import uuid4

import google.auth
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from onboarding.core.config import settings
from onboarding.core.paths import resolve_repo_path

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]


class CalendarProvider(Protocol):
    def create_event(
        self,
        *,
        summary: str,
        description: str | None,
        start_at: datetime,
        end_at: datetime,
        attendees: list[str],
    ) -> dict[str, Any] | None: ...

    def update_event(self, event_id: str, *, start_at: datetime, end_at: datetime) -> None: ...

    def delete_event(self, event_id: str) -> None: ...


def _find_meeting_link(event: dict[str, Any]) -> str | None:
    link = event.get("hangoutLink")
    if link:
        return link
    conference = event.get("conferenceData") or {}
    for entry in conference.get("entryPoints", []) or []:
        if entry.get("entryPointType") == "video":
            return entry.get("uri")
    return None


def _iso(value: datetime) -> str:
    # Naive values are stored UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class GoogleCalendarClient:
    """Google Calendar v3 wrapper; blocking, callers run it in a worker thread."""

    def __init__(self, calendar_id: str | None = None, subject_email: str | None = None) -> None:
        self.calendar_id = calendar_id or settings.calendar_id or "primary"
        self.subject_email = subject_email or settings.gmail_sender_email
        self._service = None

    @property
    def enabled(self) -> bool:
        return settings.enable_calendar

    def _client(self):
        if self._service is not None:
            return self._service
        service_account_path = settings.google_application_credentials
        if service_account_path:
            credentials = Credentials.from_service_account_file(
                str(resolve_repo_path(service_account_path)), scopes=SCOPES
            )
            if self.subject_email:
                credentials = credentials.with_subject(self.subject_email)
        else:
            credentials, _ = google.auth.default(scopes=SCOPES)
        self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
        return self._service

    def create_event(
        self,
        *,
        summary: str,
        description: str | None,
        start_at: datetime,
        end_at: datetime,
        attendees: list[str],
    ) -> dict[str, Any] | None:
        if not self.enabled:
            return None

        tz = settings.calendar_timezone or "UTC"
        body = {
            "summary": summary,
            "description": description or "",
            "start": {"dateTime": _iso(start_at), "timeZone": tz},
            "end": {"dateTime": _iso(end_at), "timeZone": tz},
            "attendees": [{"email": email} for email in attendees if email],
            "conferenceData": {
                "createRequest": {
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                    "requestId": uuid4().hex,
                }
            },
        }
        event = (
            self._client()
            .events()
            .insert(calendarId=self.calendar_id, body=body, conferenceDataVersion=1, sendUpdates="all")
            .execute()
        )
        return {"event_id": event.get("id"), "meeting_link": _find_meeting_link(event)}

    def update_event(self, event_id: str, *, start_at: datetime, end_at: datetime) -> None:
        if not self.enabled:
            return
        tz = settings.calendar_timezone or "UTC"
        body = {
            "start": {"dateTime": _iso(start_at), "timeZone": tz},
            "end": {"dateTime": _iso(end_at), "timeZone": tz},
        }
        self._client().events().patch(
            calendarId=self.calendar_id, eventId=event_id, body=body, sendUpdates="all"
        ).execute()

    def delete_event(self, event_id: str) -> None:
        if not self.enabled:
            return
        self._client().events().delete(calendarId=self.calendar_id, eventId=event_id, sendUpdates="all").execute()


_default_client: GoogleCalendarClient | None = None


def get_calendar_client() -> GoogleCalendarClient:
    global _default_client
    if _default_client is None:
        _default_client = GoogleCalendarClient()
    return _default_client
