"""Data models for the Gmail module."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class MessageRef:
    """A message id returned by a Gmail search, before the full fetch."""

    id: str
    thread_id: str = ""


@dataclass
class MailMessage:
    """Decoded content of a single Gmail message."""

    id: str
    subject: str
    sender: str
    date: str
    body: str
    snippet: str = ""
    thread_id: str = ""
    label_ids: list[str] = field(default_factory=list)

    @property
    def content(self) -> str:
        """Body text, or the snippet when the body is empty."""
        return self.body or self.snippet

    @property
    def gmail_link(self) -> str:
        return f"https://mail.google.com/mail/#inbox/{self.id}"


@dataclass
class BatchResult:
    """Messages fetched by ``MailGateway.get_details_batch`` and per-id failures."""

    emails: list[MailMessage] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
