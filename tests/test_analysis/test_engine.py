"""Tests for the LLM analysis engine."""

import json
from unittest.mock import MagicMock

import pytest

from mail_calendar_agent.analysis.engine import AnalysisEngine, build_prompt, parse_analysis
from mail_calendar_agent.analysis.models import Category, Deadline, Sentiment
from mail_calendar_agent.exceptions import LLMError
from mail_calendar_agent.gmail.models import MailMessage
from mail_calendar_agent.llm.client import Completion
from mail_calendar_agent.throttle import Throttle


def _message(message_id="m1", subject="Report due", body="Send the report by Friday 5pm"):
    return MailMessage(id=message_id, subject=subject, sender="boss@corp.com", date="", body=body)


def _reply(**overrides):
    data = {
        "summary": "Boss wants the report",
        "importance_score": 8,
        "deadline_info": {
            "has_deadline": True,
            "deadline_date": "2025-03-14",
            "deadline_time": "17:00",
            "deadline_description": "Submit report",
        },
        "action_required": True,
        "category": "work",
        "sentiment": "neutral",
        "keywords": ["report", "friday"],
    }
    data.update(overrides)
    return json.dumps(data)


def _llm(text=None, error=None):
    llm = MagicMock()
    if error is not None:
        llm.complete.side_effect = error
    else:
        llm.complete.return_value = Completion(text=text, model="m")
    return llm


def test_parse_analysis():
    result = parse_analysis(_reply())
    assert result.summary == "Boss wants the report"
    assert result.importance_score == 8
    assert result.deadline == Deadline(date="2025-03-14", time="17:00", description="Submit report")
    assert result.action_required is True
    assert result.category == Category.WORK
    assert result.sentiment == Sentiment.NEUTRAL
    assert result.keywords == ["report", "friday"]
    assert result.source == "llm"


def test_parse_analysis_strips_code_fences():
    result = parse_analysis("```json\n" + _reply() + "\n```")
    assert result.importance_score == 8


@pytest.mark.parametrize("raw,expected", [
    (15, 10),
    (0, 1),
    ("7", 7),
    (6.6, 7),
    ("high", 5),
    (None, 5),
    ("inf", 10),
    ("-inf", 1),
    (float("inf"), 10),
    ("nan", 5),
    (10 ** 400, 5),
])
def test_importance_clamped(raw, expected):
    assert parse_analysis(_reply(importance_score=raw)).importance_score == expected


def test_no_deadline_means_no_deadline_fields():
    result = parse_analysis(_reply(deadline_info={
        "has_deadline": False,
        "deadline_date": "2025-03-14",
        "deadline_time": None,
        "deadline_description": None,
    }))
    assert result.deadline is None
    assert result.deadline_info()["deadline_date"] is None
    assert result.deadline_json() is None


def test_deadline_values_normalized():
    result = parse_analysis(_reply(deadline_info={
        "has_deadline": "true",
        "deadline_date": "March 14, 2025",
        "deadline_time": "9:05",
        "deadline_description": "Kickoff",
    }))
    assert result.deadline == Deadline(date="2025-03-14", time="09:05", description="Kickoff")


def test_unparseable_deadline_values_dropped():
    result = parse_analysis(_reply(deadline_info={
        "has_deadline": True,
        "deadline_date": "null",
        "deadline_time": "25:00",
        "deadline_description": "Sometime",
    }))
    assert result.deadline == Deadline(date=None, time=None, description="Sometime")
    assert json.loads(result.deadline_json())["has_deadline"] is True


def test_unknown_enums_defaulted():
    result = parse_analysis(_reply(category="urgent", sentiment="angry"))
    assert result.category == Category.OTHER
    assert result.sentiment == Sentiment.NEUTRAL


def test_summary_truncated():
    assert len(parse_analysis(_reply(summary="x" * 500)).summary) == 200


@pytest.mark.parametrize("text", ["not json", "", "[1, 2]", '"just a string"'])
def test_parse_analysis_rejects_non_objects(text):
    with pytest.raises(ValueError):
        parse_analysis(text)


def test_build_prompt_uses_snippet_when_no_body():
    message = MailMessage(id="m1", subject="S", sender="a@b.c", date="", body="", snippet="snip")
    assert "Content: snip" in build_prompt(message)


def test_analyze_uses_llm():
    llm = _llm(_reply())
    result = AnalysisEngine(llm).analyze(_message())
    assert result.source == "llm"
    assert result.importance_score == 8
    assert "Subject: Report due" in llm.complete.call_args.kwargs["prompt"]


def test_analyze_falls_back_on_llm_error():
    result = AnalysisEngine(_llm(error=LLMError("down"))).analyze(_message())
    assert result.source == "fallback"
    assert result.summary.startswith("Report due - ")


def test_analyze_falls_back_on_unexpected_error():
    result = AnalysisEngine(_llm(error=RuntimeError("socket closed"))).analyze(_message())
    assert result.source == "fallback"


def test_analyze_falls_back_on_garbage_reply():
    result = AnalysisEngine(_llm("I think this email is important!")).analyze(_message())
    assert result.source == "fallback"
    assert result.raw_response == "I think this email is important!"


def test_analyze_accepts_infinite_importance():
    reply = '{"summary": "x", "importance_score": Infinity}'
    result = AnalysisEngine(_llm(reply)).analyze(_message())
    assert result.source == "llm"
    assert result.importance_score == 10


def test_analyze_overflowing_importance_literal():
    reply = '{"summary": "x", "importance_score": 1e400}'
    assert AnalysisEngine(_llm(reply)).analyze(_message()).importance_score == 10


def test_analyze_without_llm():
    assert AnalysisEngine().analyze(_message()).source == "fallback"


def test_analyze_batch():
    engine = AnalysisEngine(_llm(_reply()))
    results = engine.analyze_batch([_message("m1"), _message("m2")], throttle=Throttle(0))
    assert [r["email_id"] for r in results] == ["m1", "m2"]
    assert all(r["success"] for r in results)


def test_test_connection_without_llm():
    assert AnalysisEngine().test_connection()["success"] is False


def test_to_dict():
    data = parse_analysis(_reply()).to_dict()
    assert data["category"] == "work"
    assert data["deadline_info"]["deadline_time"] == "17:00"
