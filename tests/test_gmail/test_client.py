"""Tests for the Gmail gateway."""

import base64
from unittest.mock import MagicMock, patch

import pytest

from mail_calendar_agent.exceptions import GmailFetchError
from mail_calendar_agent.gmail.client import MailGateway
from mail_calendar_agent.gmail.models import MessageRef
from mail_calendar_agent.throttle import Throttle


def _raw(message_id, subject="Hello"):
    return {
        "id": message_id,
        "threadId": f"t-{message_id}",
        "snippet": "snippet",
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": "bob@example.com"},
            ],
            "body": {"data": base64.urlsafe_b64encode(b"Body text").decode()},
        },
    }


@pytest.fixture
def database():
    db = MagicMock()
    db.is_processed.return_value = False
    return db


@pytest.fixture
def gateway(database):
    mock_service = MagicMock()
    with patch("mail_calendar_agent.gmail.client.build", return_value=mock_service):
        client = MailGateway(
            MagicMock(), "alice@example.com", database=database, throttle=Throttle(0)
        )
    return client, mock_service


def test_list_recent(gateway, database):
    client, service = gateway
    service.users().messages().list().execute.return_value = {
        "messages": [{"id": "m1", "threadId": "t1"}, {"id": "m2", "threadId": "t2"}],
    }
    refs = client.list_recent(max_results=10, time_range="1d")
    assert refs == [MessageRef(id="m1", thread_id="t1"), MessageRef(id="m2", thread_id="t2")]

    kwargs = service.users().messages().list.call_args.kwargs
    assert kwargs["q"] == "newer_than:1d -in:spam -in:trash -from:noreply"
    assert kwargs["userId"] == "me"
    database.log_action.assert_called_once_with(
        "alice@example.com", "fetch_emails", "success", "Found 2 emails"
    )


def test_list_recent_empty(gateway):
    client, service = gateway
    service.users().messages().list().execute.return_value = {"resultSizeEstimate": 0}
    assert client.list_recent() == []


def test_list_recent_follows_pages_up_to_max(gateway):
    client, service = gateway
    service.users().messages().list().execute.side_effect = [
        {"messages": [{"id": "m1"}, {"id": "m2"}], "nextPageToken": "p2"},
        {"messages": [{"id": "m3"}], "nextPageToken": "p3"},
    ]
    refs = client.list_recent(max_results=3)
    assert [r.id for r in refs] == ["m1", "m2", "m3"]
    assert service.users().messages().list.call_args.kwargs["pageToken"] == "p2"


def test_list_recent_error(gateway, database):
    client, service = gateway
    service.users().messages().list().execute.side_effect = Exception("quota exceeded")
    with pytest.raises(GmailFetchError, match="Failed to get recent emails"):
        client.list_recent()
    database.log_action.assert_called_once_with(
        "alice@example.com", "fetch_emails", "error", "quota exceeded"
    )


def test_list_recent_invalid_time_range(gateway):
    client, _ = gateway
    with pytest.raises(ValueError):
        client.list_recent(time_range="soon")


def test_get_details(gateway):
    client, service = gateway
    service.users().messages().get().execute.return_value = _raw("m1", "Report")
    message = client.get_details("m1")
    assert message.id == "m1"
    assert message.subject == "Report"
    assert message.body == "Body text"
    assert service.users().messages().get.call_args.kwargs["format"] == "full"


def test_get_details_error(gateway, database):
    client, service = gateway
    service.users().messages().get().execute.side_effect = Exception("404 not found")
    with pytest.raises(GmailFetchError, match="m404"):
        client.get_details("m404")
    action = database.log_action.call_args.args
    assert action[1:3] == ("get_email_details", "error")


def test_get_details_batch_collects_failures(gateway):
    client, service = gateway
    service.users().messages().get().execute.side_effect = [
        _raw("m1"),
        Exception("boom"),
        _raw("m3"),
    ]
    result = client.get_details_batch(["m1", "m2", "m3"])
    assert [m.id for m in result.emails] == ["m1", "m3"]
    assert len(result.errors) == 1
    assert result.errors[0]["type"] == "fetch"
    assert result.errors[0]["message_id"] == "m2"
    assert "boom" in result.errors[0]["error"]


def test_get_details_batch_skips_processed(gateway, database):
    client, service = gateway
    database.is_processed.side_effect = lambda mid: mid == "m1"
    service.users().messages().get().execute.return_value = _raw("m2")
    result = client.get_details_batch(["m1", "m2"])
    assert result.skipped == ["m1"]
    assert [m.id for m in result.emails] == ["m2"]


def test_get_details_batch_paces_fetches(database):
    throttle = MagicMock()
    mock_service = MagicMock()
    mock_service.users().messages().get().execute.return_value = _raw("m1")
    with patch("mail_calendar_agent.gmail.client.build", return_value=mock_service):
        client = MailGateway(MagicMock(), "alice@example.com", database=database, throttle=throttle)
    client.get_details_batch(["m1", "m2", "m3"])
    assert throttle.wait.call_count == 3


def test_test_connection(gateway):
    client, service = gateway
    service.users().getProfile().execute.return_value = {
        "emailAddress": "alice@example.com",
        "messagesTotal": 42,
    }
    assert client.test_connection() == {
        "success": True,
        "email": "alice@example.com",
        "messages_total": 42,
    }


def test_test_connection_failure(gateway):
    client, service = gateway
    service.users().getProfile().execute.side_effect = Exception("invalid_grant")
    result = client.test_connection()
    assert result["success"] is False
    assert "invalid_grant" in result["error"]
