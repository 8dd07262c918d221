"""Resolve stored OAuth tokens into usable Google credentials.

Tokens live in the ``users`` table; this module turns them into a
``google.oauth2.credentials.Credentials`` object per call. Refreshing is an
explicit step: ``get_credentials`` reports whether a refresh happened and the
caller persists the new access token.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

import dateutil.parser as parser
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from mail_calendar_agent.exceptions import CredentialError
from mail_calendar_agent.storage.models import User

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/userinfo.email",
]

TOKEN_URI = "https://oauth2.googleapis.com/token"

# Google access tokens are issued for one hour; the users table stores
# when the current token was written, not when it expires.
ACCESS_TOKEN_LIFETIME = timedelta(hours=1)


@dataclass
class ResolvedCredentials:
    """Credentials ready for ``googleapiclient.discovery.build``."""

    credentials: Credentials
    refreshed: bool = False

    @property
    def access_token(self) -> str | None:
        return self.credentials.token

    @property
    def refresh_token(self) -> str | None:
        return self.credentials.refresh_token


class CredentialManager:
    """Builds per-user Google credentials from the client secret and stored tokens.

    Args:
        client_secret_file: Path to the client secrets JSON downloaded from
            Google Cloud Console (``installed`` or ``web`` application type).
        scopes: OAuth2 scopes the tokens were granted for.
    """

    def __init__(self, client_secret_file: Path, scopes: list[str] | None = None):
        self._client_secret = Path(client_secret_file)
        self.scopes = scopes or list(SCOPES)
        self._client_config: dict | None = None

    def load_client_config(self) -> dict:
        """Return client_id, client_secret and token_uri from the secrets file."""
        if self._client_config is not None:
            return self._client_config

        if not self._client_secret.exists():
            raise CredentialError(
                f"Client secret not found at {self._client_secret}. "
                "Download it from Google Cloud Console and place it there."
            )
        try:
            data = json.loads(self._client_secret.read_text())
        except (json.JSONDecodeError, OSError) as e:
            raise CredentialError(f"Failed to read client secret: {e}") from e

        section = data.get("installed") or data.get("web")
        if not section:
            raise CredentialError("Unsupported client secret format")
        if not section.get("client_id") or not section.get("client_secret"):
            raise CredentialError("Client secret is missing client_id or client_secret")

        self._client_config = {
            "client_id": section["client_id"],
            "client_secret": section["client_secret"],
            "token_uri": section.get("token_uri", TOKEN_URI),
        }
        return self._client_config

    def get_credentials(self, user: User | None) -> ResolvedCredentials:
        """Build credentials for a stored user, refreshing if they have expired.

        Raises:
            CredentialError: The user is unknown, has no access token, or the
                refresh was rejected or could not reach Google.
        """
        if user is None or not user.access_token:
            email = user.email if user else "unknown user"
            raise CredentialError(f"User not authenticated: {email}")

        config = self.load_client_config()
        creds = Credentials(
            token=user.access_token,
            refresh_token=user.refresh_token,
            token_uri=config["token_uri"],
            client_id=config["client_id"],
            client_secret=config["client_secret"],
            scopes=self.scopes,
        )
        if user.updated_at:
            try:
                # SQLite CURRENT_TIMESTAMP is naive UTC, as google-auth expects.
                creds.expiry = parser.parse(user.updated_at) + ACCESS_TOKEN_LIFETIME
            except (ValueError, OverflowError):
                logger.warning(f"Unparseable token timestamp for {user.email}: {user.updated_at!r}")

        refreshed = False
        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as e:
                raise CredentialError(
                    f"Token for '{user.email}' could not be refreshed. "
                    f"Re-authorize the account. ({e})"
                ) from e
            except TransportError as e:
                raise CredentialError(
                    f"Token for '{user.email}' could not be refreshed: "
                    f"token endpoint unreachable ({e})"
                ) from e
            refreshed = True
            logger.info(f"Refreshed access token for {user.email}")

        return ResolvedCredentials(credentials=creds, refreshed=refreshed)
