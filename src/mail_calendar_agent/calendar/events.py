"""Build Google Calendar event bodies from an email and its analysis."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from dateutil import tz

from mail_calendar_agent.analysis.models import AnalysisResult, Category
from mail_calendar_agent.gmail.models import MailMessage

AGENT_MARKER = "ai-agent"
AGENT_SOURCE_TITLE = "Mail Calendar AI Agent"

DEFAULT_START = time(9, 0)
MEETING_MINUTES = 60
TASK_MINUTES = 30
MAX_TITLE_LENGTH = 100
MAX_CONTENT_LENGTH = 500
# Google rejects extended property values longer than 1024 characters.
MAX_PROPERTY_LENGTH = 1024

REMINDERS = [
    {"method": "email", "minutes": 24 * 60},
    {"method": "popup", "minutes": 30},
]


def resolve_timezone(name: str) -> tzinfo:
    return tz.gettz(name) or tz.UTC


def event_start(analysis: AnalysisResult, now: datetime) -> datetime:
    """Explicit deadline date (and time, default 09:00), else tomorrow at 09:00."""
    deadline = analysis.deadline
    zone = now.tzinfo

    if deadline is not None and deadline.date:
        day = date.fromisoformat(deadline.date)
        at = DEFAULT_START
        if deadline.time:
            hour, minute = deadline.time.split(":")
            at = time(int(hour), int(minute))
        return datetime.combine(day, at, tzinfo=zone)

    tomorrow = (now + timedelta(days=1)).date()
    return datetime.combine(tomorrow, DEFAULT_START, tzinfo=zone)


def event_duration(message: MailMessage, analysis: AnalysisResult) -> timedelta:
    if analysis.category == Category.WORK and "meeting" in message.subject.lower():
        return timedelta(minutes=MEETING_MINUTES)
    return timedelta(minutes=TASK_MINUTES)


def event_title(message: MailMessage, analysis: AnalysisResult) -> str:
    if analysis.deadline is not None and analysis.deadline.description:
        title = f"📧 {analysis.deadline.description}"
    elif analysis.action_required:
        title = f"📧 Action Required: {message.subject}"
    else:
        title = f"📧 {message.subject}"

    if len(title) > MAX_TITLE_LENGTH:
        return title[:MAX_TITLE_LENGTH - 3] + "..."
    return title


def event_description(message: MailMessage, analysis: AnalysisResult) -> str:
    parts = [
        "🤖 This event was created automatically by Mail Calendar AI Agent",
        "",
        "📧 **Original Email:**",
        f"From: {message.sender}",
        f"Subject: {message.subject}",
        f"Date: {message.date}",
        "",
        "🧠 **AI Analysis:**",
        f"Summary: {analysis.summary}",
        f"Importance: {analysis.importance_score}/10",
        f"Category: {analysis.category.value}",
        f"Action Required: {'Yes' if analysis.action_required else 'No'}",
    ]
    if analysis.deadline is not None and analysis.deadline.description:
        parts.append(f"Deadline: {analysis.deadline.description}")
    if analysis.keywords:
        parts.append(f"Keywords: {', '.join(analysis.keywords)}")

    content = message.content
    if len(content) > MAX_CONTENT_LENGTH:
        content = content[:MAX_CONTENT_LENGTH] + "... [truncated]"
    parts.extend(["", "📎 **Original Email Content:**", content])

    return "\n".join(parts)


def build_event_body(
    message: MailMessage,
    analysis: AnalysisResult,
    now: datetime | None = None,
    timezone: str = "UTC",
) -> dict[str, Any]:
    """Calendar API ``events.insert`` body for an email with a deadline.

    Raises:
        ValueError: The analysis found no deadline.
    """
    if not analysis.has_deadline:
        raise ValueError("Cannot build an event for an email without a deadline")

    zone = resolve_timezone(timezone)
    if zone is tz.UTC:
        # Unknown zone names resolve to UTC; label the event to match.
        timezone = "UTC"
    now = now.astimezone(zone) if now is not None else datetime.now(zone)
    start = event_start(analysis, now)
    end = start + event_duration(message, analysis)

    return {
        "summary": event_title(message, analysis),
        "description": event_description(message, analysis),
        "start": {"dateTime": start.isoformat(), "timeZone": timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": timezone},
        "reminders": {"useDefault": False, "overrides": [dict(r) for r in REMINDERS]},
        "source": {"title": AGENT_SOURCE_TITLE, "url": message.gmail_link},
        "extendedProperties": {
            "private": {
                AGENT_MARKER: "true",
                "email-subject": message.subject[:MAX_PROPERTY_LENGTH],
                "email-from": message.sender[:MAX_PROPERTY_LENGTH],
                "importance-score": str(analysis.importance_score),
            }
        },
    }


def is_agent_event(event: dict) -> bool:
    """True only for events tagged with the agent's private marker."""
    private = (event.get("extendedProperties") or {}).get("private") or {}
    return private.get(AGENT_MARKER) == "true"
