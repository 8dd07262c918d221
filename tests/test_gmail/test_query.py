"""Tests for Gmail query builder."""

import pytest

from mail_calendar_agent.gmail.query import construct_query, parse_time_range, recent_query


def test_simple_sender():
    q = construct_query(sender="alice@example.com")
    assert q == "from:alice@example.com"


def test_and_terms():
    q = construct_query(sender="alice@example.com", subject="Meeting")
    assert q == "from:alice@example.com subject:Meeting"


def test_or_senders():
    q = construct_query(sender=["alice@example.com", "bob@example.com"])
    assert q == "{from:alice@example.com from:bob@example.com}"


def test_exclude():
    q = construct_query(exclude_sender="spam@example.com")
    assert q == "-from:spam@example.com"


def test_exclude_list_negates_each():
    q = construct_query(exclude_in=["spam", "trash"])
    assert q == "-in:spam -in:trash"


def test_newer_than_tuple():
    q = construct_query(newer_than=(5, "day"))
    assert q == "newer_than:5d"


def test_newer_than_string():
    assert construct_query(newer_than="2m") == "newer_than:2m"


def test_flags():
    assert construct_query(starred=True) == "is:starred"
    assert construct_query(unread=False) == ""
    assert construct_query(attachment=True) == "has:attachment"


def test_unknown_term():
    with pytest.raises(ValueError, match="Unknown query term"):
        construct_query(color="red")


def test_parse_time_range():
    assert parse_time_range("1d") == (1, "d")
    assert parse_time_range(" 12H ") == (12, "h")


@pytest.mark.parametrize("bad", ["", "d", "1w", "one day", "-1d"])
def test_parse_time_range_invalid(bad):
    with pytest.raises(ValueError, match="Invalid time range"):
        parse_time_range(bad)


def test_recent_query():
    assert recent_query("1d") == "newer_than:1d -in:spam -in:trash -from:noreply"
    assert recent_query("7d").startswith("newer_than:7d ")
