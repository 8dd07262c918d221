"""Aggregate results of a processing run."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

# Error types reported in RunResult.errors
ERROR_CREDENTIAL = "credential"
ERROR_FETCH = "fetch"
ERROR_CALENDAR = "calendar"
ERROR_PROCESSING = "processing"
ERROR_STORAGE = "storage"


@dataclass
class RunError:
    type: str
    error: str
    email_subject: str | None = None
    message_id: str | None = None


@dataclass
class RunSummary:
    total_emails: int = 0
    processed_emails: int = 0
    created_events: int = 0
    skipped_emails: int = 0
    errors: int = 0


@dataclass
class ProcessedItem:
    id: str
    subject: str
    sender: str
    importance_score: int
    has_deadline: bool
    category: str
    summary: str
    created_event: dict | None = None


@dataclass
class CreatedEvent:
    event_id: str
    event_title: str
    event_date: str | None
    email_subject: str


@dataclass
class RunResult:
    """Outcome of ``EmailProcessor.run``.

    ``success`` is False only when the whole run aborted (no credentials,
    listing failed); per-message failures are in ``errors`` alongside a
    successful run.
    """

    success: bool
    message: str
    summary: RunSummary = field(default_factory=RunSummary)
    processed: list[ProcessedItem] = field(default_factory=list)
    created_events: list[CreatedEvent] = field(default_factory=list)
    errors: list[RunError] = field(default_factory=list)

    @classmethod
    def failure(cls, message: str, error_type: str, error: str, summary: RunSummary | None = None):
        return cls(
            success=False,
            message=message,
            summary=summary or RunSummary(),
            errors=[RunError(type=error_type, error=error)],
        )

    def add_error(self, error: RunError) -> None:
        self.errors.append(error)
        self.summary.errors += 1

    def to_dict(self) -> dict:
        return asdict(self)
