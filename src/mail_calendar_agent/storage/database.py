"""SQLite persistence for users, processed emails and agent logs."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from mail_calendar_agent.exceptions import StorageError
from mail_calendar_agent.storage.models import AgentLogEntry, ProcessedEmailRecord, User

logger = logging.getLogger(__name__)

LOG_STATUSES = ("info", "success", "error")

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT UNIQUE NOT NULL,
        access_token TEXT,
        refresh_token TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS processed_emails (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_email TEXT NOT NULL,
        message_id TEXT UNIQUE NOT NULL,
        subject TEXT,
        sender TEXT,
        content TEXT,
        ai_summary TEXT,
        importance_score INTEGER,
        deadline_extracted TEXT,
        calendar_event_id TEXT,
        processed_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_email) REFERENCES users (email) ON DELETE CASCADE
    )
    """,
    # No foreign key: failed attempts by unknown users are logged too.
    """
    CREATE TABLE IF NOT EXISTS agent_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_email TEXT NOT NULL,
        action TEXT NOT NULL,
        status TEXT NOT NULL,
        details TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def _row_to_record(r: sqlite3.Row) -> ProcessedEmailRecord:
    return ProcessedEmailRecord(
        id=r["id"],
        user_email=r["user_email"],
        message_id=r["message_id"],
        subject=r["subject"] or "",
        sender=r["sender"] or "",
        content=r["content"] or "",
        ai_summary=r["ai_summary"] or "",
        importance_score=r["importance_score"],
        deadline_extracted=r["deadline_extracted"],
        calendar_event_id=r["calendar_event_id"],
        processed_at=r["processed_at"] or "",
    )


class Database:
    """Thin keyed access to the agent's SQLite file.

    A connection is opened per operation, so one ``Database`` may be shared
    by several processors.

    Args:
        db_path: Location of the SQLite file. Parent directories are created
            by ``initialize()``.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            return conn
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database at {self.db_path}: {e}") from e

    def _execute(self, sql: str, params: tuple = ()) -> int:
        """Run a write statement and return the number of rows affected."""
        conn = self._connect()
        try:
            with conn:
                return conn.execute(sql, params).rowcount
        except sqlite3.Error as e:
            raise StorageError(f"Database write failed: {e}") from e
        finally:
            conn.close()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Database read failed: {e}") from e
        finally:
            conn.close()

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        rows = self._fetchall(sql, params)
        return rows[0] if rows else None

    def initialize(self) -> None:
        """Create the database file and tables if they do not exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                for statement in _SCHEMA:
                    conn.execute(statement)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize database: {e}") from e
        finally:
            conn.close()
        logger.info(f"Database ready at {self.db_path}")

    # ---- Users (credential store) ----

    def upsert_user(self, email: str, access_token: str, refresh_token: str | None) -> None:
        """Store tokens for a user, replacing any previous pair."""
        self._execute(
            """
            INSERT INTO users (email, access_token, refresh_token)
            VALUES (?, ?, ?)
            ON CONFLICT(email) DO UPDATE SET
                access_token = excluded.access_token,
                refresh_token = excluded.refresh_token,
                updated_at = CURRENT_TIMESTAMP
            """,
            (email, access_token, refresh_token),
        )
        logger.info(f"User saved: {email}")

    def get_user(self, email: str) -> User | None:
        row = self._fetchone("SELECT * FROM users WHERE email = ?", (email,))
        if row is None:
            return None
        return User(
            email=row["email"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )

    def get_all_users(self) -> list[dict]:
        """List users without their tokens, newest first."""
        rows = self._fetchall(
            "SELECT email, created_at FROM users ORDER BY created_at DESC, id DESC"
        )
        return [{"email": r["email"], "created_at": r["created_at"]} for r in rows]

    # ---- Processed emails ----

    def save_processed_email(self, record: ProcessedEmailRecord) -> int:
        """Insert a processed email unless its message id is already stored.

        Returns:
            Number of rows inserted: 1 for a new message, 0 for a duplicate.
        """
        changes = self._execute(
            """
            INSERT OR IGNORE INTO processed_emails
            (user_email, message_id, subject, sender, content, ai_summary,
             importance_score, deadline_extracted, calendar_event_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.user_email,
                record.message_id,
                record.subject,
                record.sender,
                record.content,
                record.ai_summary,
                record.importance_score,
                record.deadline_extracted,
                record.calendar_event_id,
            ),
        )
        if changes > 0:
            logger.info(f"Email processed: {record.subject}")
        else:
            logger.info(f"Email already processed, skipping: {record.message_id}")
        return changes

    def is_processed(self, message_id: str) -> bool:
        row = self._fetchone(
            "SELECT id FROM processed_emails WHERE message_id = ?", (message_id,)
        )
        return row is not None

    def get_processed_emails(self, user_email: str, limit: int = 50) -> list[ProcessedEmailRecord]:
        rows = self._fetchall(
            """
            SELECT * FROM processed_emails WHERE user_email = ?
            ORDER BY processed_at DESC, id DESC LIMIT ?
            """,
            (user_email, limit),
        )
        return [_row_to_record(r) for r in rows]

    def get_processed_email(self, message_id: str) -> ProcessedEmailRecord | None:
        """Look up one processed email by its Gmail message id."""
        row = self._fetchone("SELECT * FROM processed_emails WHERE message_id = ?", (message_id,))
        return _row_to_record(row) if row else None

    # ---- Agent logs ----

    def log_action(
        self,
        user_email: str,
        action: str,
        status: str,
        details: str | None = None,
    ) -> None:
        """Append an agent log entry."""
        if status not in LOG_STATUSES:
            raise ValueError(f"Unknown log status {status!r}; expected one of {LOG_STATUSES}")
        self._execute(
            "INSERT INTO agent_logs (user_email, action, status, details) VALUES (?, ?, ?, ?)",
            (user_email, action, status, details),
        )
        logger.debug(f"Agent: {action} - {status} for {user_email}")

    def get_agent_logs(self, user_email: str, limit: int = 100) -> list[AgentLogEntry]:
        rows = self._fetchall(
            """
            SELECT * FROM agent_logs WHERE user_email = ?
            ORDER BY created_at DESC, id DESC LIMIT ?
            """,
            (user_email, limit),
        )
        return [
            AgentLogEntry(
                id=r["id"],
                user_email=r["user_email"],
                action=r["action"],
                status=r["status"],
                details=r["details"],
                created_at=r["created_at"] or "",
            )
            for r in rows
        ]

    # ---- Aggregates ----

    def get_stats(self) -> dict:
        conn = self._connect()
        try:
            total_users = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
            total_emails = conn.execute("SELECT COUNT(*) FROM processed_emails").fetchone()[0]
            successful = conn.execute(
                "SELECT COUNT(*) FROM agent_logs WHERE status = 'success'"
            ).fetchone()[0]
        except sqlite3.Error as e:
            raise StorageError(f"Failed to compute database stats: {e}") from e
        finally:
            conn.close()
        return {
            "total_users": total_users,
            "total_emails": total_emails,
            "successful_actions": successful,
        }

    def get_user_overview(self) -> list[dict]:
        """Per-user activity counts. Token values are never returned."""
        rows = self._fetchall(
            """
            SELECT
                u.email,
                u.created_at,
                (u.access_token IS NOT NULL AND u.refresh_token IS NOT NULL) AS has_tokens,
                (SELECT COUNT(*) FROM processed_emails p WHERE p.user_email = u.email)
                    AS processed_count,
                (SELECT COUNT(*) FROM agent_logs l WHERE l.user_email = u.email)
                    AS logs_count
            FROM users u
            ORDER BY u.created_at DESC, u.id DESC
            """
        )
        return [
            {
                "email": r["email"],
                "created_at": r["created_at"],
                "processed_emails_count": r["processed_count"],
                "agent_logs_count": r["logs_count"],
                "has_tokens": bool(r["has_tokens"]),
            }
            for r in rows
        ]
