"""Email analysis: LLM summary and classification with a keyword fallback."""

from mail_calendar_agent.analysis.engine import AnalysisEngine, parse_analysis
from mail_calendar_agent.analysis.fallback import fallback_analysis
from mail_calendar_agent.analysis.models import AnalysisResult, Category, Deadline, Sentiment

__all__ = [
    "AnalysisEngine",
    "AnalysisResult",
    "Category",
    "Deadline",
    "Sentiment",
    "fallback_analysis",
    "parse_analysis",
]
