"""Google Calendar access for a single authorized user."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any

from mail_calendar_agent.analysis.models import AnalysisResult
from mail_calendar_agent.calendar.events import (
    AGENT_MARKER,
    build_event_body,
    is_agent_event,
)
from mail_calendar_agent.exceptions import CalendarError
from mail_calendar_agent.gmail.models import MailMessage
from mail_calendar_agent.storage.database import Database

logger = logging.getLogger(__name__)

AGENT_LOOKBACK_DAYS = 30


def _rfc3339(dt: datetime) -> str:
    return dt.astimezone(dt_timezone.utc).isoformat().replace("+00:00", "Z")


def summarize_event(event: dict) -> dict:
    """Flatten a Calendar API event into the fields callers display."""
    start = event.get("start", {})
    end = event.get("end", {})
    private = (event.get("extendedProperties") or {}).get("private") or {}
    return {
        "id": event.get("id"),
        "summary": event.get("summary", "(No title)"),
        "description": event.get("description", ""),
        "start": start.get("dateTime", start.get("date")),
        "end": end.get("dateTime", end.get("date")),
        "status": event.get("status"),
        "html_link": event.get("htmlLink"),
        "agent_created": is_agent_event(event),
        "email_subject": private.get("email-subject"),
        "email_from": private.get("email-from"),
        "importance_score": private.get("importance-score"),
    }


class SchedulingGateway:
    """Creates and manages calendar events derived from analyzed emails.

    Args:
        credentials: google.oauth2.credentials.Credentials for the user.
        user_email: Calendar owner, used for agent log entries.
        database: Receives agent action log entries; None disables logging.
        timezone: IANA zone name for new events.
        calendar_id: Calendar to write to.
    """

    def __init__(
        self,
        credentials,
        user_email: str,
        database: Database | None = None,
        timezone: str = "UTC",
        calendar_id: str = "primary",
    ):
        try:
            from googleapiclient.discovery import build
        except ImportError:
            raise ImportError(
                "google-api-python-client is required for SchedulingGateway. "
                "Install with: pip install google-api-python-client"
            )
        self.user_email = user_email
        self.database = database
        self.timezone = timezone
        self.calendar_id = calendar_id
        self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)

    def _log_action(self, action: str, status: str, details: str) -> None:
        if self.database is not None:
            self.database.log_action(self.user_email, action, status, details)

    def create_from_analysis(
        self,
        message: MailMessage,
        analysis: AnalysisResult,
        now: datetime | None = None,
    ) -> dict | None:
        """Create an event for an email's deadline.

        Returns:
            The created event summary, or None when the analysis found no
            deadline.

        Raises:
            CalendarError: The Calendar API rejected the event.
        """
        if not analysis.has_deadline:
            return None

        try:
            body = build_event_body(message, analysis, now=now, timezone=self.timezone)
            event = (
                self._service.events()
                .insert(calendarId=self.calendar_id, body=body)
                .execute()
            )
        except Exception as e:
            self._log_action(
                "create_calendar_event",
                "error",
                f"Failed to create event for email: {message.subject} - {e}",
            )
            raise CalendarError(f"Failed to create calendar event: {e}") from e

        self._log_action(
            "create_calendar_event",
            "success",
            f"Created event: {event.get('summary')} ({event.get('id')})",
        )
        logger.info(f"Created calendar event: {event.get('summary')}")
        return summarize_event(event)

    def _list(self, time_min: datetime, max_results: int) -> list[dict]:
        result = (
            self._service.events()
            .list(
                calendarId=self.calendar_id,
                timeMin=_rfc3339(time_min),
                maxResults=max_results,
                singleEvents=True,
                orderBy="startTime",
            )
            .execute()
        )
        return result.get("items", [])

    def list_upcoming(self, max_results: int = 10) -> list[dict]:
        try:
            events = self._list(datetime.now(dt_timezone.utc), max_results)
        except Exception as e:
            raise CalendarError(f"Failed to get upcoming events: {e}") from e
        logger.info(f"Retrieved {len(events)} upcoming events")
        return [summarize_event(e) for e in events]

    def list_agent_created(
        self,
        max_results: int = 50,
        lookback_days: int = AGENT_LOOKBACK_DAYS,
    ) -> list[dict]:
        """Recent and upcoming events carrying the agent marker.

        ``max_results`` bounds the listing, and the marker filter runs on
        that page, so fewer than ``max_results`` events may come back.
        """
        since = datetime.now(dt_timezone.utc) - timedelta(days=lookback_days)
        try:
            events = self._list(since, max_results)
        except Exception as e:
            raise CalendarError(f"Failed to get agent-created events: {e}") from e

        agent_events = [summarize_event(e) for e in events if is_agent_event(e)]
        logger.info(f"Found {len(agent_events)} agent-created events")
        return agent_events

    def update(self, event_id: str, updates: dict[str, Any]) -> dict:
        """Patch an event.

        Args:
            event_id: The event to modify.
            updates: Dict with optional keys: summary, description, location,
                start_time, end_time (ISO 8601 strings).
        """
        body: dict[str, Any] = {}
        for key in ("summary", "description", "location"):
            if key in updates:
                body[key] = updates[key]
        if "start_time" in updates:
            body["start"] = {"dateTime": updates["start_time"], "timeZone": self.timezone}
        if "end_time" in updates:
            body["end"] = {"dateTime": updates["end_time"], "timeZone": self.timezone}
        if not body:
            raise ValueError(f"No supported fields in update: {sorted(updates)}")

        try:
            event = (
                self._service.events()
                .patch(calendarId=self.calendar_id, eventId=event_id, body=body)
                .execute()
            )
        except Exception as e:
            self._log_action(
                "update_calendar_event", "error", f"Failed to update event {event_id}: {e}"
            )
            raise CalendarError(f"Failed to update event {event_id}: {e}") from e

        self._log_action(
            "update_calendar_event",
            "success",
            f"Updated event: {event.get('summary')} ({event.get('id')})",
        )
        return summarize_event(event)

    def delete(self, event_id: str) -> bool:
        try:
            self._service.events().delete(
                calendarId=self.calendar_id, eventId=event_id
            ).execute()
        except Exception as e:
            self._log_action(
                "delete_calendar_event", "error", f"Failed to delete event {event_id}: {e}"
            )
            raise CalendarError(f"Failed to delete event {event_id}: {e}") from e

        self._log_action("delete_calendar_event", "success", f"Deleted event: {event_id}")
        logger.info(f"Deleted calendar event: {event_id}")
        return True

    def test_connection(self) -> dict:
        """List the user's calendars to confirm the credentials work."""
        try:
            response = self._service.calendarList().list().execute()
        except Exception as e:
            logger.error(f"Calendar connection test failed for {self.user_email}: {e}")
            return {"success": False, "error": str(e)}

        return {
            "success": True,
            "calendars": [
                {"id": c.get("id"), "summary": c.get("summary"), "primary": c.get("primary", False)}
                for c in response.get("items", [])
            ],
        }

    def test_event_roundtrip(self) -> dict:
        """Create a marked test event and read it back."""
        start = datetime.now(dt_timezone.utc) + timedelta(days=1)
        body = {
            "summary": "🧪 Test Event - Mail Calendar AI Agent",
            "description": "Created by Mail Calendar AI Agent to verify event creation and retrieval.",
            "start": {"dateTime": _rfc3339(start), "timeZone": "UTC"},
            "end": {"dateTime": _rfc3339(start + timedelta(hours=1)), "timeZone": "UTC"},
            "extendedProperties": {"private": {AGENT_MARKER: "true", "test-event": "true"}},
        }

        try:
            created = (
                self._service.events()
                .insert(calendarId=self.calendar_id, body=body)
                .execute()
            )
        except Exception as e:
            logger.error(f"Test event creation failed: {e}")
            return {"success": False, "create_success": False, "error": str(e)}

        try:
            self._service.events().get(
                calendarId=self.calendar_id, eventId=created["id"]
            ).execute()
        except Exception as e:
            logger.error(f"Test event {created['id']} created but not retrievable: {e}")
            return {
                "success": False,
                "create_success": True,
                "can_retrieve": False,
                "event_id": created["id"],
                "error": str(e),
            }

        return {
            "success": True,
            "create_success": True,
            "can_retrieve": True,
            "event_id": created["id"],
            "event_summary": created.get("summary"),
        }
