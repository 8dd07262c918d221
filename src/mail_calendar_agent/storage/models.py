"""Records persisted in the agent database."""

from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass
class User:
    """An authorized mailbox owner and their stored OAuth tokens."""

    email: str
    access_token: str | None
    refresh_token: str | None
    created_at: str = ""
    updated_at: str = ""

    @property
    def has_tokens(self) -> bool:
        return bool(self.access_token)


@dataclass
class ProcessedEmailRecord:
    """One analyzed message. ``message_id`` is unique across the table."""

    user_email: str
    message_id: str
    subject: str
    sender: str
    content: str
    ai_summary: str
    importance_score: int
    deadline_extracted: str | None = None  # JSON, only when a deadline was found
    calendar_event_id: str | None = None
    processed_at: str = ""
    id: int | None = None

    @property
    def deadline_info(self) -> dict | None:
        """Decoded ``deadline_extracted``; None when absent or malformed."""
        if not self.deadline_extracted:
            return None
        try:
            info = json.loads(self.deadline_extracted)
        except ValueError:
            return None
        return info if isinstance(info, dict) else None


@dataclass
class AgentLogEntry:
    """Append-only record of a notable agent step."""

    user_email: str
    action: str
    status: str  # "info", "success", "error"
    details: str | None = None
    created_at: str = ""
    id: int | None = None
