"""Keyword heuristics used when the LLM is unavailable or returns unusable output.

Everything here is deterministic: the same message always yields the same
result.
"""

from __future__ import annotations

import re
from collections import Counter

from mail_calendar_agent.analysis.models import AnalysisResult, Category, Deadline, Sentiment
from mail_calendar_agent.gmail.models import MailMessage

IMPORTANT_KEYWORDS = [
    "urgent", "deadline", "asap", "important", "critical", "meeting",
    "interview", "exam", "assignment", "project", "due", "payment",
]

DEADLINE_PATTERNS = [
    re.compile(r"\d{1,2}[/-]\d{1,2}[/-]\d{2,4}"),
    re.compile(r"today|tomorrow|next week|this week", re.IGNORECASE),
    re.compile(r"(due|deadline|expires?|ends?)\s+(on|by|at)?\s*([^\n.,]+)", re.IGNORECASE),
]

UNPARSED_DEADLINE = "Deadline detected but not parsed"

STOP_WORDS = {"this", "that", "with", "from", "they", "have", "been", "will"}

_PROMO_SENDER_MARKERS = ("noreply", "no-reply")
_SOCIAL_SENDER_MARKERS = ("facebook", "twitter", "linkedin", "instagram")

SNIPPET_LENGTH = 150


def has_important_keywords(subject: str, content: str) -> bool:
    subject, content = subject.lower(), content.lower()
    return any(k in content or k in subject for k in IMPORTANT_KEYWORDS)


def has_deadline_hint(subject: str, content: str) -> bool:
    return any(p.search(content) or p.search(subject) for p in DEADLINE_PATTERNS)


def categorize(message: MailMessage) -> Category:
    content = message.content.lower()
    subject = message.subject.lower()
    sender = message.sender.lower()

    if (
        any(m in sender for m in _PROMO_SENDER_MARKERS)
        or "unsubscribe" in content
        or "newsletter" in subject
    ):
        return Category.PROMOTIONAL

    if (
        "meeting" in subject
        or "calendar" in subject
        or "appointment" in content
        or "schedule" in content
    ):
        return Category.WORK

    if any(m in sender for m in _SOCIAL_SENDER_MARKERS):
        return Category.SOCIAL

    return Category.PERSONAL


def extract_keywords(text: str, limit: int = 5) -> list[str]:
    """Most frequent words longer than three letters, ties in order of appearance."""
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    return [word for word, _ in counts.most_common(limit)]


def fallback_analysis(message: MailMessage, raw_response: str | None = None) -> AnalysisResult:
    content = message.content
    important = has_important_keywords(message.subject, content)
    deadline_hit = has_deadline_hint(message.subject, content)

    snippet = content[:SNIPPET_LENGTH] + "..." if len(content) > SNIPPET_LENGTH else content

    return AnalysisResult(
        summary=f"{message.subject} - {snippet}",
        importance_score=8 if important else 5,
        deadline=Deadline(description=UNPARSED_DEADLINE) if deadline_hit else None,
        action_required=important or deadline_hit,
        category=categorize(message),
        sentiment=Sentiment.NEUTRAL,
        keywords=extract_keywords(content),
        source="fallback",
        raw_response=raw_response,
    )
