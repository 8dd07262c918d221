"""SQLite-backed persistence for users, processed emails and agent logs."""

from mail_calendar_agent.storage.database import Database, LOG_STATUSES
from mail_calendar_agent.storage.models import AgentLogEntry, ProcessedEmailRecord, User

__all__ = ["Database", "LOG_STATUSES", "AgentLogEntry", "ProcessedEmailRecord", "User"]
