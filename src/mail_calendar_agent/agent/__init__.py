"""Per-user email processing pipeline and status reports."""

from mail_calendar_agent.agent.processor import EmailProcessor
from mail_calendar_agent.agent.results import RunError, RunResult, RunSummary

__all__ = ["EmailProcessor", "RunError", "RunResult", "RunSummary"]
