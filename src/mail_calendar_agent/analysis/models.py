"""Result types produced by the analysis engine."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum


class Category(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    PROMOTIONAL = "promotional"
    SOCIAL = "social"
    OTHER = "other"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class Deadline:
    """A detected deadline. Date is ``YYYY-MM-DD`` and time ``HH:MM`` when known."""

    date: str | None = None
    time: str | None = None
    description: str | None = None


@dataclass
class AnalysisResult:
    """Summary and classification of one email.

    ``deadline`` is None when the email has no deadline, so the deadline
    fields can only be read when one was actually found.
    """

    summary: str
    importance_score: int
    deadline: Deadline | None
    action_required: bool
    category: Category
    sentiment: Sentiment = Sentiment.NEUTRAL
    keywords: list[str] = field(default_factory=list)
    source: str = "llm"  # "llm" or "fallback"
    raw_response: str | None = None

    @property
    def has_deadline(self) -> bool:
        return self.deadline is not None

    def deadline_info(self) -> dict:
        if self.deadline is None:
            return {
                "has_deadline": False,
                "deadline_date": None,
                "deadline_time": None,
                "deadline_description": None,
            }
        return {
            "has_deadline": True,
            "deadline_date": self.deadline.date,
            "deadline_time": self.deadline.time,
            "deadline_description": self.deadline.description,
        }

    def deadline_json(self) -> str | None:
        """Serialized deadline for storage; None when there is no deadline."""
        if self.deadline is None:
            return None
        return json.dumps(self.deadline_info())

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "importance_score": self.importance_score,
            "deadline_info": self.deadline_info(),
            "action_required": self.action_required,
            "category": self.category.value,
            "sentiment": self.sentiment.value,
            "keywords": list(self.keywords),
            "source": self.source,
        }
