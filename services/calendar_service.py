from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

from models.extraction import EventDraft
from models.report import ItemResult
from services.auth_service import PROVIDER_ERRORS, GoogleSession
from utils.config import AppConfig

LOGGER = logging.getLogger(__name__)


def build_event_body(draft: EventDraft, timezone: str, reminders: Sequence[Dict[str, object]]) -> Dict[str, Any]:
    """Map a draft onto a Calendar API event resource.

    Drafts without a start time become all-day events. Google treats the
    all-day ``end.date`` as exclusive, hence the extra day.
    """

    end_date = draft.end_date or draft.start_date
    if draft.start_time:
        end_time = draft.end_time or draft.start_time
        start = {"dateTime": f"{draft.start_date}T{draft.start_time}:00", "timeZone": timezone}
        end = {"dateTime": f"{end_date}T{end_time}:00", "timeZone": timezone}
    else:
        last_day = date.fromisoformat(end_date) + timedelta(days=1)
        start = {"date": date.fromisoformat(draft.start_date).isoformat()}
        end = {"date": last_day.isoformat()}

    return {
        "summary": draft.title,
        "description": draft.description,
        "location": draft.location or "",
        "start": start,
        "end": end,
        "reminders": {
            "useDefault": False,
            "overrides": [dict(reminder) for reminder in reminders],
        },
    }


class CalendarService:
    """Creates events in the configured calendar; each call is its own error boundary."""

    def __init__(self, config: AppConfig, session: Optional[GoogleSession] = None, client: Any = None):
        self._calendar_id = config.calendar_id
        self._timezone = config.timezone
        self._reminders: List[Dict[str, object]] = list(config.reminders)
        if client is None:
            if session is None:
                raise ValueError("CalendarService needs a GoogleSession or an API client")
            client = session.build("calendar", "v3")
        self._client = client

    def create_event(self, draft: EventDraft) -> ItemResult:
        try:
            body = build_event_body(draft, self._timezone, self._reminders)
        except ValueError as exc:
            LOGGER.error("Skipping event %r with malformed dates: %s", draft.title, exc)
            return ItemResult(kind="event", title=draft.title, ok=False, error=f"malformed date: {exc}")

        try:
            created = self._client.events().insert(calendarId=self._calendar_id, body=body).execute()
        except PROVIDER_ERRORS as exc:
            LOGGER.error("Failed to create calendar event %r: %s", draft.title, exc)
            return ItemResult(kind="event", title=draft.title, ok=False, error=str(exc))

        LOGGER.info("Created calendar event %r", draft.title)
        return ItemResult(
            kind="event",
            title=draft.title,
            ok=True,
            reference=created.get("htmlLink") or created.get("id"),
        )
