"""Calendar events for booked appointments."""

import logging
import uuid
from datetime import datetime
from typing import Any, Optional, Sequence, TypedDict

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from citabot.errors import CalendarStoreError

logger = logging.getLogger(__name__)


class Reminder(TypedDict):
    method: str  # "email" | "popup"
    minutes: int


# One day by email, then one hour and ten minutes as popups.
DEFAULT_REMINDERS: tuple[Reminder, ...] = (
    {"method": "email", "minutes": 24 * 60},
    {"method": "popup", "minutes": 60},
    {"method": "popup", "minutes": 10},
)


def build_event_body(
    title: str,
    description: str,
    start: datetime,
    end: datetime,
    timezone: str,
    reminders: Sequence[Reminder],
) -> dict[str, Any]:
    """Google Calendar event resource for a local, timezone-named slot."""
    return {
        "summary": title,
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": timezone},
        "reminders": {
            "useDefault": False,
            "overrides": [dict(r) for r in reminders],
        },
    }


class GoogleCalendarStore:
    """Calendar store backed by the Google Calendar v3 API."""

    def __init__(self, service: Any) -> None:
        self._service = service

    def create_event(
        self,
        calendar_id: str,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        timezone: str,
        reminders: Sequence[Reminder] = DEFAULT_REMINDERS,
    ) -> str:
        """
        Insert an event and return its id.

        Raises:
            CalendarStoreError: If the API call fails or returns no id.
        """
        body = build_event_body(title, description, start, end, timezone, reminders)
        try:
            event = self._service.events().insert(calendarId=calendar_id, body=body).execute()
        except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as exc:
            raise CalendarStoreError(f"Creating event failed: {exc}") from exc
        event_id: Optional[str] = (event or {}).get("id")
        if not event_id:
            raise CalendarStoreError("Calendar returned an event without id")
        logger.info("Calendar event created: %s", event_id)
        return event_id


class InMemoryCalendarStore:
    """Keeps created events in a dict, for the offline console and tests."""

    def __init__(self) -> None:
        self.events: dict[str, dict[str, Any]] = {}

    def create_event(
        self,
        calendar_id: str,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        timezone: str,
        reminders: Sequence[Reminder] = DEFAULT_REMINDERS,
    ) -> str:
        event_id = f"evt-{uuid.uuid4().hex[:8]}"
        body = build_event_body(title, description, start, end, timezone, reminders)
        body["calendarId"] = calendar_id
        self.events[event_id] = body
        return event_id

    def reset(self) -> None:
        self.events.clear()
