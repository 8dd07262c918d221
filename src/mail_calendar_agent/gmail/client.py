"""Gmail access for a single authorized user."""

from __future__ import annotations

import logging

from googleapiclient.discovery import build

from mail_calendar_agent.exceptions import GmailFetchError
from mail_calendar_agent.gmail.models import BatchResult, MailMessage, MessageRef
from mail_calendar_agent.gmail.parser import DEFAULT_MAX_BODY_LENGTH, parse_message
from mail_calendar_agent.gmail.query import recent_query
from mail_calendar_agent.storage.database import Database
from mail_calendar_agent.throttle import Throttle

logger = logging.getLogger(__name__)

# Gmail caps messages.list pages at 500; smaller pages keep responses light.
_PAGE_SIZE = 100


class MailGateway:
    """Lists and fetches a user's recent messages.

    One instance is built per request from that user's credentials; nothing
    is shared between users.

    Args:
        credentials: google.oauth2.credentials.Credentials for the user.
        user_email: Mailbox owner, used for agent log entries.
        database: Used for the already-processed check and action logging.
            When None, neither happens.
        throttle: Paces successive message fetches in batch mode.
        max_body_length: Body truncation limit passed to the parser.
    """

    def __init__(
        self,
        credentials,
        user_email: str,
        database: Database | None = None,
        throttle: Throttle | None = None,
        max_body_length: int = DEFAULT_MAX_BODY_LENGTH,
    ):
        self.user_email = user_email
        self.database = database
        self.throttle = throttle or Throttle(0.1)
        self.max_body_length = max_body_length
        self._service = build("gmail", "v1", credentials=credentials, cache_discovery=False)

    def _log_action(self, action: str, status: str, details: str) -> None:
        if self.database is not None:
            self.database.log_action(self.user_email, action, status, details)

    def list_recent(self, max_results: int = 10, time_range: str = "1d") -> list[MessageRef]:
        """List messages newer than ``time_range``. Empty list when nothing matches."""
        query = recent_query(time_range)
        logger.info(f"Fetching emails for {self.user_email} with query: {query}")

        try:
            refs = self._list_message_refs(query, max_results)
        except Exception as e:
            self._log_action("fetch_emails", "error", str(e))
            raise GmailFetchError(f"Failed to get recent emails: {e}") from e

        self._log_action("fetch_emails", "success", f"Found {len(refs)} emails")
        logger.info(f"Found {len(refs)} recent emails")
        return refs

    def _list_message_refs(self, query: str, max_results: int) -> list[MessageRef]:
        refs: list[MessageRef] = []
        page_token = None

        while len(refs) < max_results:
            kwargs: dict = {
                "userId": "me",
                "q": query,
                "maxResults": min(max_results - len(refs), _PAGE_SIZE),
            }
            if page_token:
                kwargs["pageToken"] = page_token

            response = self._service.users().messages().list(**kwargs).execute()
            messages = response.get("messages", [])
            if not messages:
                break

            refs.extend(
                MessageRef(id=m["id"], thread_id=m.get("threadId", ""))
                for m in messages
            )
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return refs[:max_results]

    def get_details(self, message_id: str) -> MailMessage:
        """Fetch one message and decode its headers and body."""
        try:
            raw = (
                self._service.users()
                .messages()
                .get(userId="me", id=message_id, format="full")
                .execute()
            )
            return parse_message(raw, max_body_length=self.max_body_length)
        except Exception as e:
            self._log_action(
                "get_email_details", "error", f"Failed to get email {message_id}: {e}"
            )
            raise GmailFetchError(f"Failed to get email details for {message_id}: {e}") from e

    def get_details_batch(self, message_ids: list[str]) -> BatchResult:
        """Fetch messages one at a time, skipping ids that were already processed.

        Failures are collected per id instead of aborting the batch.
        """
        result = BatchResult()

        for message_id in message_ids:
            if self.database is not None and self.database.is_processed(message_id):
                logger.info(f"Skipping already processed email {message_id}")
                result.skipped.append(message_id)
                continue

            self.throttle.wait()
            try:
                result.emails.append(self.get_details(message_id))
            except GmailFetchError as e:
                logger.warning(f"Failed to fetch message {message_id}: {e}")
                result.errors.append({
                    "type": "fetch",
                    "message_id": message_id,
                    "error": str(e),
                })

        logger.info(
            f"Fetched {len(result.emails)} emails "
            f"({len(result.skipped)} already processed, {len(result.errors)} failed)"
        )
        return result

    def test_connection(self) -> dict:
        """Read the mailbox profile to confirm the credentials work."""
        try:
            profile = self._service.users().getProfile(userId="me").execute()
            logger.info(f"Gmail connection test successful for {self.user_email}")
            return {
                "success": True,
                "email": profile.get("emailAddress", ""),
                "messages_total": profile.get("messagesTotal", 0),
            }
        except Exception as e:
            logger.error(f"Gmail connection test failed for {self.user_email}: {e}")
            return {"success": False, "error": str(e)}
