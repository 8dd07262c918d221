"""Tests for calendar client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from mail_calendar_agent.analysis.models import AnalysisResult, Category, Deadline
from mail_calendar_agent.calendar.client import SchedulingGateway, summarize_event
from mail_calendar_agent.exceptions import CalendarError
from mail_calendar_agent.gmail.models import MailMessage

AGENT_PROPS = {"private": {"ai-agent": "true", "email-subject": "Report", "importance-score": "8"}}


@pytest.fixture
def calendar_client():
    mock_service = MagicMock()
    creds = MagicMock()
    database = MagicMock()
    with patch("googleapiclient.discovery.build", return_value=mock_service):
        client = SchedulingGateway(creds, "alice@example.com", database=database)
    return client, mock_service, database


def _message():
    return MailMessage(id="msg-1", subject="Report", sender="boss@corp.com", date="", body="Send it")


def _analysis(deadline=Deadline(date="2025-03-14", description="Submit report")):
    return AnalysisResult(
        summary="Report requested",
        importance_score=8,
        deadline=deadline,
        action_required=True,
        category=Category.WORK,
    )


def test_create_from_analysis(calendar_client):
    client, service, database = calendar_client
    service.events().insert().execute.return_value = {
        "id": "new-evt",
        "summary": "📧 Submit report",
        "start": {"dateTime": "2025-03-14T09:00:00Z"},
        "end": {"dateTime": "2025-03-14T09:30:00Z"},
        "htmlLink": "https://calendar.google.com/event?id=new-evt",
        "extendedProperties": AGENT_PROPS,
    }
    now = datetime(2025, 3, 1, tzinfo=timezone.utc)
    event = client.create_from_analysis(_message(), _analysis(), now=now)

    assert event["id"] == "new-evt"
    assert event["agent_created"] is True
    assert event["start"] == "2025-03-14T09:00:00Z"
    body = service.events().insert.call_args.kwargs["body"]
    assert body["summary"] == "📧 Submit report"
    assert service.events().insert.call_args.kwargs["calendarId"] == "primary"
    database.log_action.assert_called_once_with(
        "alice@example.com", "create_calendar_event", "success",
        "Created event: 📧 Submit report (new-evt)",
    )


def test_create_without_deadline_is_noop(calendar_client):
    client, service, _ = calendar_client
    assert client.create_from_analysis(_message(), _analysis(deadline=None)) is None
    service.events().insert().execute.assert_not_called()


def test_create_error(calendar_client):
    client, service, database = calendar_client
    service.events().insert().execute.side_effect = Exception("403 forbidden")
    with pytest.raises(CalendarError, match="Failed to create calendar event"):
        client.create_from_analysis(_message(), _analysis())
    assert database.log_action.call_args.args[1:3] == ("create_calendar_event", "error")


def test_list_upcoming(calendar_client):
    client, service, _ = calendar_client
    service.events().list().execute.return_value = {
        "items": [
            {
                "id": "evt1",
                "summary": "Team Meeting",
                "start": {"dateTime": "2024-01-15T09:00:00-05:00"},
                "end": {"dateTime": "2024-01-15T10:00:00-05:00"},
                "status": "confirmed",
            }
        ]
    }
    events = client.list_upcoming()
    assert len(events) == 1
    assert events[0]["summary"] == "Team Meeting"
    assert events[0]["agent_created"] is False
    kwargs = service.events().list.call_args.kwargs
    assert kwargs["singleEvents"] is True
    assert kwargs["orderBy"] == "startTime"
    assert kwargs["timeMin"].endswith("Z")


def test_list_agent_created_filters_marker(calendar_client):
    client, service, _ = calendar_client
    service.events().list().execute.return_value = {
        "items": [
            {"id": "evt1", "summary": "Dentist", "start": {"date": "2025-03-02"}},
            {"id": "evt2", "summary": "📧 Report", "extendedProperties": AGENT_PROPS},
        ]
    }
    events = client.list_agent_created()
    assert [e["id"] for e in events] == ["evt2"]
    assert events[0]["email_subject"] == "Report"
    assert events[0]["importance_score"] == "8"


def test_list_events_error(calendar_client):
    client, service, _ = calendar_client
    service.events().list().execute.side_effect = Exception("API error")
    with pytest.raises(CalendarError, match="Failed to get upcoming events"):
        client.list_upcoming()
    with pytest.raises(CalendarError, match="agent-created"):
        client.list_agent_created()


def test_update(calendar_client):
    client, service, _ = calendar_client
    service.events().patch().execute.return_value = {"id": "evt1", "summary": "Renamed"}
    event = client.update("evt1", {"summary": "Renamed", "start_time": "2025-03-14T10:00:00"})
    assert event["summary"] == "Renamed"
    body = service.events().patch.call_args.kwargs["body"]
    assert body == {
        "summary": "Renamed",
        "start": {"dateTime": "2025-03-14T10:00:00", "timeZone": "UTC"},
    }


def test_update_requires_supported_fields(calendar_client):
    client, _, _ = calendar_client
    with pytest.raises(ValueError, match="No supported fields"):
        client.update("evt1", {"colour": "red"})


def test_delete_event(calendar_client):
    client, service, database = calendar_client
    service.events().delete().execute.return_value = None
    assert client.delete("evt1") is True
    database.log_action.assert_called_once_with(
        "alice@example.com", "delete_calendar_event", "success", "Deleted event: evt1"
    )


def test_delete_error(calendar_client):
    client, service, _ = calendar_client
    service.events().delete().execute.side_effect = Exception("410 gone")
    with pytest.raises(CalendarError, match="evt1"):
        client.delete("evt1")


def test_test_connection(calendar_client):
    client, service, _ = calendar_client
    service.calendarList().list().execute.return_value = {
        "items": [{"id": "primary-id", "summary": "Alice", "primary": True}]
    }
    result = client.test_connection()
    assert result["success"] is True
    assert result["calendars"][0]["primary"] is True


def test_test_connection_failure(calendar_client):
    client, service, _ = calendar_client
    service.calendarList().list().execute.side_effect = Exception("invalid_grant")
    assert client.test_connection() == {"success": False, "error": "invalid_grant"}


def test_event_roundtrip(calendar_client):
    client, service, _ = calendar_client
    service.events().insert().execute.return_value = {"id": "test-evt", "summary": "🧪 Test"}
    service.events().get().execute.return_value = {"id": "test-evt"}
    result = client.test_event_roundtrip()
    assert result["success"] is True
    assert result["can_retrieve"] is True
    body = service.events().insert.call_args.kwargs["body"]
    assert body["extendedProperties"]["private"]["ai-agent"] == "true"


def test_event_roundtrip_not_retrievable(calendar_client):
    client, service, _ = calendar_client
    service.events().insert().execute.return_value = {"id": "test-evt"}
    service.events().get().execute.side_effect = Exception("404")
    result = client.test_event_roundtrip()
    assert result["success"] is False
    assert result["create_success"] is True
    assert result["can_retrieve"] is False


def test_summarize_event_all_day():
    event = summarize_event({"id": "e", "start": {"date": "2025-03-02"}, "end": {"date": "2025-03-03"}})
    assert event["start"] == "2025-03-02"
    assert event["summary"] == "(No title)"
