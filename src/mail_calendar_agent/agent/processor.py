"""Email processing pipeline: fetch, analyze, schedule, persist."""

from __future__ import annotations

import logging
from typing import Callable

from mail_calendar_agent.agent.results import (
    ERROR_CALENDAR,
    ERROR_CREDENTIAL,
    ERROR_FETCH,
    ERROR_PROCESSING,
    ERROR_STORAGE,
    CreatedEvent,
    ProcessedItem,
    RunError,
    RunResult,
    RunSummary,
)
from mail_calendar_agent.analysis.engine import AnalysisEngine
from mail_calendar_agent.auth import CredentialManager
from mail_calendar_agent.config import AgentConfig
from mail_calendar_agent.exceptions import (
    AgentError,
    CalendarError,
    CredentialError,
    GmailFetchError,
    LLMError,
    StorageError,
)
from mail_calendar_agent.gmail.models import MailMessage
from mail_calendar_agent.gmail.query import parse_time_range
from mail_calendar_agent.llm.client import LLMClient
from mail_calendar_agent.storage.database import Database
from mail_calendar_agent.storage.models import ProcessedEmailRecord
from mail_calendar_agent.throttle import Throttle

logger = logging.getLogger(__name__)

# (credentials, user_email) -> gateway
GatewayFactory = Callable[[object, str], object]


class EmailProcessor:
    """Runs the per-user pipeline and the read-only status operations.

    Every call resolves the user's credentials and builds fresh gateways,
    so one processor can serve many users. Messages are handled strictly
    one at a time.

    Args:
        database: Processed-email store, credential store and action log.
        credentials: Turns stored tokens into Google credentials.
        analyzer: Summarizes and classifies each message.
        config: Delays, body limit and timezone.
        mail_factory: Builds a mail gateway; defaults to ``MailGateway``.
        calendar_factory: Builds a scheduling gateway; defaults to
            ``SchedulingGateway``.
        throttle: Paces successive messages; defaults to
            ``config.process_delay``.
    """

    def __init__(
        self,
        database: Database,
        credentials: CredentialManager,
        analyzer: AnalysisEngine,
        config: AgentConfig | None = None,
        mail_factory: GatewayFactory | None = None,
        calendar_factory: GatewayFactory | None = None,
        throttle: Throttle | None = None,
    ):
        self.database = database
        self.credentials = credentials
        self.analyzer = analyzer
        self.config = config or AgentConfig()
        self.mail_factory = mail_factory or self._default_mail_gateway
        self.calendar_factory = calendar_factory or self._default_scheduling_gateway
        self.throttle = throttle or Throttle(self.config.process_delay)

    @classmethod
    def from_config(cls, config: AgentConfig) -> "EmailProcessor":
        """Wire database, credentials and analyzer from configuration."""
        database = Database(config.database_path)
        database.initialize()

        llm = None
        try:
            llm = LLMClient(api_key=config.anthropic_api_key, model=config.llm_model)
        except LLMError as e:
            logger.warning(f"LLM unavailable, analysis will use the keyword fallback: {e}")

        return cls(
            database=database,
            credentials=CredentialManager(config.client_secret_file),
            analyzer=AnalysisEngine(llm),
            config=config,
        )

    def _default_mail_gateway(self, credentials, user_email: str):
        from mail_calendar_agent.gmail.client import MailGateway
        return MailGateway(
            credentials,
            user_email,
            database=self.database,
            throttle=Throttle(self.config.fetch_delay),
            max_body_length=self.config.max_body_length,
        )

    def _default_scheduling_gateway(self, credentials, user_email: str):
        from mail_calendar_agent.calendar.client import SchedulingGateway
        return SchedulingGateway(
            credentials,
            user_email,
            database=self.database,
            timezone=self.config.timezone,
        )

    def resolve_credentials(self, user_email: str):
        """Credentials for ``user_email``, persisting a refreshed access token."""
        user = self.database.get_user(user_email)
        resolved = self.credentials.get_credentials(user)
        if resolved.refreshed:
            self.database.upsert_user(
                user_email,
                resolved.access_token,
                resolved.refresh_token or user.refresh_token,
            )
        return resolved.credentials

    # ---- Processing ----

    def run(
        self,
        user_email: str,
        max_emails: int = 10,
        time_range: str = "1d",
        create_events: bool = True,
    ) -> RunResult:
        """Process a user's recent emails once.

        Never raises for provider failures: a run that cannot start (no
        credentials, listing failed) returns ``success=False`` with a single
        error, and per-message failures are recorded in the result.
        """
        logger.info(f"Starting AI agent processing for {user_email}")
        try:
            self.database.log_action(
                user_email,
                "agent_process_start",
                "info",
                f"Processing up to {max_emails} emails from last {time_range}",
            )
            result = self._run(user_email, max_emails, time_range, create_events)
            if result.success:
                self.database.log_action(
                    user_email,
                    "agent_process_complete",
                    "success",
                    f"Processed {result.summary.processed_emails} emails, "
                    f"created {result.summary.created_events} events",
                )
            else:
                self.database.log_action(
                    user_email, "agent_process_error", "error", result.errors[0].error
                )
        except StorageError as e:
            logger.error(f"Agent processing for {user_email} aborted by storage failure: {e}")
            return RunResult.failure("Agent processing failed", ERROR_STORAGE, str(e))

        logger.info(
            f"Summary for {user_email}: {result.summary.processed_emails} processed, "
            f"{result.summary.created_events} events, {result.summary.errors} errors"
        )
        return result

    def _run(
        self,
        user_email: str,
        max_emails: int,
        time_range: str,
        create_events: bool,
    ) -> RunResult:
        try:
            parse_time_range(time_range)
        except ValueError as e:
            logger.error(f"Cannot process emails for {user_email}: {e}")
            return RunResult.failure("Failed to fetch emails", ERROR_FETCH, str(e))

        try:
            credentials = self.resolve_credentials(user_email)
            mail = self.mail_factory(credentials, user_email)
        except CredentialError as e:
            logger.error(f"Cannot process emails for {user_email}: {e}")
            return RunResult.failure("User is not authorized", ERROR_CREDENTIAL, str(e))

        summary = RunSummary()
        try:
            refs = mail.list_recent(max_results=max_emails, time_range=time_range)
        except GmailFetchError as e:
            logger.error(f"Listing emails for {user_email} failed: {e}")
            return RunResult.failure("Failed to fetch emails", ERROR_FETCH, str(e), summary)

        summary.total_emails = len(refs)
        result = RunResult(success=True, message="AI agent processing completed", summary=summary)
        if not refs:
            logger.info("No new emails found")
            result.message = "No new emails found to process"
            return result

        batch = mail.get_details_batch([ref.id for ref in refs])
        summary.skipped_emails += len(batch.skipped)
        for err in batch.errors:
            result.add_error(RunError(
                type=ERROR_FETCH,
                error=err.get("error", ""),
                message_id=err.get("message_id"),
            ))

        if not batch.emails:
            result.message = (
                "All recent emails were already processed"
                if batch.skipped and not batch.errors
                else "No email details could be retrieved"
            )
            return result

        logger.info(f"Analyzing {len(batch.emails)} emails")
        calendar = None
        for index, message in enumerate(batch.emails, start=1):
            self.throttle.wait()
            logger.info(f"Processing email {index}/{len(batch.emails)}: {message.subject}")
            try:
                calendar = self._process_message(
                    result, user_email, message, credentials, calendar, create_events
                )
            except Exception as e:
                logger.error(f"Processing email '{message.subject}' failed: {e!r}")
                result.add_error(RunError(
                    type=ERROR_PROCESSING,
                    error=str(e),
                    email_subject=message.subject,
                    message_id=message.id,
                ))

        return result

    def _process_message(
        self,
        result: RunResult,
        user_email: str,
        message: MailMessage,
        credentials,
        calendar,
        create_events: bool,
    ):
        """Analyze, optionally schedule, and persist one message.

        Returns the scheduling gateway so it is built at most once per run.
        """
        analysis = self.analyzer.analyze(message)

        created = None
        if create_events and analysis.has_deadline:
            try:
                if calendar is None:
                    calendar = self.calendar_factory(credentials, user_email)
                logger.info(f"Creating calendar event for: {message.subject}")
                created = calendar.create_from_analysis(message, analysis)
            except CalendarError as e:
                logger.error(f"Calendar event creation for '{message.subject}' failed: {e}")
                result.add_error(RunError(
                    type=ERROR_CALENDAR,
                    error=str(e),
                    email_subject=message.subject,
                    message_id=message.id,
                ))

        record = ProcessedEmailRecord(
            user_email=user_email,
            message_id=message.id,
            subject=message.subject,
            sender=message.sender,
            content=message.content,
            ai_summary=analysis.summary,
            importance_score=analysis.importance_score,
            deadline_extracted=analysis.deadline_json(),
            calendar_event_id=created["id"] if created else None,
        )

        if self.database.save_processed_email(record) == 0:
            # Another run stored this message first; drop the duplicate event.
            result.summary.skipped_emails += 1
            if created:
                self._discard_event(calendar, created["id"])
            return calendar

        created_ref = None
        if created:
            created_ref = {"id": created["id"], "title": created.get("summary")}
            result.created_events.append(CreatedEvent(
                event_id=created["id"],
                event_title=created.get("summary") or "",
                event_date=created.get("start"),
                email_subject=message.subject,
            ))
            result.summary.created_events += 1

        result.processed.append(ProcessedItem(
            id=message.id,
            subject=message.subject,
            sender=message.sender,
            importance_score=analysis.importance_score,
            has_deadline=analysis.has_deadline,
            category=analysis.category.value,
            summary=analysis.summary,
            created_event=created_ref,
        ))
        result.summary.processed_emails += 1
        return calendar

    def _discard_event(self, calendar, event_id: str) -> None:
        try:
            calendar.delete(event_id)
        except CalendarError as e:
            logger.warning(f"Could not remove duplicate event {event_id}: {e}")

    # ---- Read-only operations ----

    def get_status(self, user_email: str) -> dict:
        """Recent processed emails and agent-created events for a user.

        Raises:
            CredentialError: The user is not authorized.
        """
        processed = self.database.get_processed_emails(user_email, limit=20)

        events: list[dict] = []
        calendar_error = None
        credentials = self.resolve_credentials(user_email)
        try:
            calendar = self.calendar_factory(credentials, user_email)
            events = calendar.list_agent_created(max_results=10)
        except CalendarError as e:
            logger.error(f"Could not list agent events for {user_email}: {e}")
            calendar_error = str(e)

        return {
            "email": user_email,
            "total_processed_emails": len(processed),
            "recent_emails": [
                {
                    "subject": p.subject,
                    "sender": p.sender,
                    "importance_score": p.importance_score,
                    "processed_at": p.processed_at,
                    "has_calendar_event": bool(p.calendar_event_id),
                }
                for p in processed[:5]
            ],
            "recent_events": [
                {
                    "id": e["id"],
                    "title": e["summary"],
                    "start": e["start"],
                    "description": e["description"],
                }
                for e in events[:5]
            ],
            "last_processed": processed[0].processed_at if processed else None,
            "calendar_error": calendar_error,
        }

    def test_services(self, user_email: str) -> dict:
        """Probe Gmail, the LLM and Calendar independently."""
        results = {}

        logger.info("Testing Gmail connection...")
        try:
            credentials = self.resolve_credentials(user_email)
            results["gmail"] = self.mail_factory(credentials, user_email).test_connection()
        except AgentError as e:
            results["gmail"] = {"success": False, "error": str(e)}

        logger.info("Testing LLM connection...")
        results["llm"] = self.analyzer.test_connection()

        logger.info("Testing Calendar connection...")
        try:
            credentials = self.resolve_credentials(user_email)
            results["calendar"] = self.calendar_factory(credentials, user_email).test_connection()
        except AgentError as e:
            results["calendar"] = {"success": False, "error": str(e)}

        all_ok = all(r.get("success") for r in results.values())
        return {
            "success": all_ok,
            "message": "All services working correctly" if all_ok else "Some services have issues",
            "results": results,
        }

    def get_dashboard(self, user_email: str) -> dict:
        """Recent agent activity with success and error counts."""
        logs = self.database.get_agent_logs(user_email, limit=20)
        successful = sum(1 for log in logs if log.status == "success")
        failed = sum(1 for log in logs if log.status == "error")
        return {
            "email": user_email,
            "recent_activity": [
                {
                    "action": log.action,
                    "status": log.status,
                    "details": log.details,
                    "created_at": log.created_at,
                }
                for log in logs[:10]
            ],
            "stats": {
                "total_actions": len(logs),
                "successful_actions": successful,
                "error_actions": failed,
                "success_rate": round(successful / len(logs) * 100) if logs else 0,
            },
        }

    def reconcile_events(self, user_email: str) -> dict:
        """Compare event ids stored with processed emails against the calendar.

        Raises:
            CredentialError: The user is not authorized.
            CalendarError: The calendar could not be listed.
        """
        credentials = self.resolve_credentials(user_email)
        calendar = self.calendar_factory(credentials, user_email)
        calendar_events = calendar.list_agent_created(max_results=50)
        stored = [
            p for p in self.database.get_processed_emails(user_email, limit=50)
            if p.calendar_event_id
        ]

        calendar_ids = {e["id"] for e in calendar_events}
        return {
            "calendar_events": [
                {"calendar_event_id": e["id"], "summary": e["summary"]}
                for e in calendar_events
            ],
            "database_events": [
                {"calendar_event_id": p.calendar_event_id, "subject": p.subject}
                for p in stored
            ],
            "mismatches": [
                {
                    "calendar_event_id": p.calendar_event_id,
                    "subject": p.subject,
                    "issue": "Event id stored in database but not found in Google Calendar",
                }
                for p in stored
                if p.calendar_event_id not in calendar_ids
            ],
        }
