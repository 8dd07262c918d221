"""LLM-backed email analysis with a deterministic fallback."""

from __future__ import annotations

import json
import logging
import math
import re

import dateutil.parser as parser

from mail_calendar_agent.analysis.fallback import fallback_analysis
from mail_calendar_agent.analysis.models import AnalysisResult, Category, Deadline, Sentiment
from mail_calendar_agent.exceptions import LLMError
from mail_calendar_agent.gmail.models import MailMessage
from mail_calendar_agent.throttle import Throttle

logger = logging.getLogger(__name__)

MAX_SUMMARY_LENGTH = 200

SYSTEM_PROMPT = """You analyze emails for a personal assistant that schedules deadlines.
Respond ONLY with a JSON object, no other text, in exactly this format:
{
  "summary": "Brief summary of the email content (max 200 characters)",
  "importance_score": <integer 1-10, 10 being most important>,
  "deadline_info": {
    "has_deadline": true/false,
    "deadline_date": "YYYY-MM-DD if found, null otherwise",
    "deadline_time": "HH:MM (24h) if found, null otherwise",
    "deadline_description": "what the deadline is for, null if none"
  },
  "action_required": true/false,
  "category": "work" | "personal" | "promotional" | "social" | "other",
  "sentiment": "positive" | "neutral" | "negative",
  "keywords": ["key", "words", "from", "email"]
}"""

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_TIME = re.compile(r"^(\d{1,2}):(\d{2})")


def build_prompt(message: MailMessage) -> str:
    return (
        "Email to analyze:\n"
        f"Subject: {message.subject}\n"
        f"From: {message.sender}\n"
        f"Content: {message.content}"
    )


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def _normalize_date(value) -> str | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return parser.parse(value).date().isoformat()
    except (ValueError, OverflowError):
        logger.debug(f"Ignoring unparseable deadline date: {value!r}")
        return None


def _normalize_time(value) -> str | None:
    if not value or not isinstance(value, str):
        return None
    match = _TIME.match(value.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def parse_analysis(text: str) -> AnalysisResult:
    """Parse the model's reply into an AnalysisResult.

    Raises:
        ValueError: The reply is not a JSON object.
    """
    data = json.loads(strip_code_fences(text))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        score = float(data.get("importance_score", 5))
    except (TypeError, ValueError, OverflowError):
        score = 5.0
    if math.isnan(score):
        score = 5.0
    # Clamp before rounding so infinities land on the bounds.
    importance = int(round(min(10.0, max(1.0, score))))

    info = data.get("deadline_info") or {}
    deadline = None
    if isinstance(info, dict) and _as_bool(info.get("has_deadline")):
        description = info.get("deadline_description")
        deadline = Deadline(
            date=_normalize_date(info.get("deadline_date")),
            time=_normalize_time(info.get("deadline_time")),
            description=str(description) if description else None,
        )

    try:
        category = Category(str(data.get("category", "")).strip().lower())
    except ValueError:
        category = Category.OTHER
    try:
        sentiment = Sentiment(str(data.get("sentiment", "")).strip().lower())
    except ValueError:
        sentiment = Sentiment.NEUTRAL

    keywords = data.get("keywords") or []
    if not isinstance(keywords, list):
        keywords = []

    return AnalysisResult(
        summary=str(data.get("summary") or "")[:MAX_SUMMARY_LENGTH],
        importance_score=importance,
        deadline=deadline,
        action_required=_as_bool(data.get("action_required", False)),
        category=category,
        sentiment=sentiment,
        keywords=[str(k) for k in keywords if k],
        source="llm",
        raw_response=text,
    )


class AnalysisEngine:
    """Summarizes and classifies emails; ``analyze`` never raises.

    Args:
        llm: An ``LLMClient``. When None every email goes through the
            keyword fallback.
    """

    def __init__(self, llm=None):
        self.llm = llm

    def analyze(self, message: MailMessage) -> AnalysisResult:
        if self.llm is None:
            return fallback_analysis(message)

        try:
            reply = self.llm.complete(
                system_prompt=SYSTEM_PROMPT,
                prompt=build_prompt(message),
            )
        except LLMError as e:
            logger.warning(f"LLM analysis failed for '{message.subject}', using fallback: {e}")
            return fallback_analysis(message)
        except Exception as e:
            logger.warning(
                f"Unexpected LLM failure for '{message.subject}', using fallback: {e!r}"
            )
            return fallback_analysis(message)

        text = reply.text
        try:
            analysis = parse_analysis(text)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(f"Unparseable LLM response for '{message.subject}': {e}")
            return fallback_analysis(message, raw_response=text)

        logger.info(f"Email analyzed: {message.subject}")
        return analysis

    def analyze_batch(
        self,
        messages: list[MailMessage],
        throttle: Throttle | None = None,
    ) -> list[dict]:
        """Analyze messages in order, pacing LLM calls with ``throttle``."""
        throttle = throttle or Throttle(0.1)
        results = []
        for message in messages:
            throttle.wait()
            analysis = self.analyze(message)
            results.append({
                "email_id": message.id,
                "analysis": analysis,
                "success": analysis.source == "llm",
            })
        return results

    def test_connection(self) -> dict:
        if self.llm is None:
            return {"success": False, "error": "No LLM client configured"}
        return self.llm.test_connection()
