"""Runtime configuration resolved from environment variables."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATABASE_PATH = "./database/mail_calendar.db"
DEFAULT_CLIENT_SECRET_FILE = "./credentials.json"
DEFAULT_LLM_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_MAX_BODY_LENGTH = 5000


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class AgentConfig:
    """Settings shared by the gateways and the processor.

    Every field has a default, so ``AgentConfig()`` is usable in tests;
    ``AgentConfig.from_env()`` is what applications call.
    """

    database_path: Path = Path(DEFAULT_DATABASE_PATH)
    client_secret_file: Path = Path(DEFAULT_CLIENT_SECRET_FILE)
    llm_model: str = DEFAULT_LLM_MODEL
    anthropic_api_key: str | None = None
    max_body_length: int = DEFAULT_MAX_BODY_LENGTH
    fetch_delay: float = 0.1
    process_delay: float = 0.2
    timezone: str = "UTC"
    debug: bool = False

    @classmethod
    def from_env(cls) -> "AgentConfig":
        return cls(
            database_path=Path(os.environ.get("DATABASE_PATH", DEFAULT_DATABASE_PATH)),
            client_secret_file=Path(
                os.environ.get("GOOGLE_CREDENTIALS_PATH", DEFAULT_CLIENT_SECRET_FILE)
            ),
            llm_model=os.environ.get("DEFAULT_LLM_MODEL", DEFAULT_LLM_MODEL),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            max_body_length=_env_int("MAX_BODY_LENGTH", DEFAULT_MAX_BODY_LENGTH),
            fetch_delay=_env_float("FETCH_DELAY_SECONDS", 0.1),
            process_delay=_env_float("PROCESS_DELAY_SECONDS", 0.2),
            timezone=os.environ.get("AGENT_TIMEZONE") or os.environ.get("TZ") or "UTC",
            debug=os.environ.get("DEBUG_MODE", "").lower() == "true",
        )

    def validate(self) -> list[str]:
        """Return a list of configuration problems. Empty means usable."""
        problems = []

        if not self.client_secret_file.exists():
            problems.append(
                f"Google client secret file not found at: {self.client_secret_file}"
            )
        else:
            try:
                data = json.loads(self.client_secret_file.read_text())
            except (json.JSONDecodeError, OSError) as e:
                problems.append(f"Invalid client secret file: {e}")
            else:
                section = data.get("installed") or data.get("web")
                if section is None:
                    problems.append("Unsupported client secret format (expected 'installed' or 'web')")
                elif not section.get("client_id") or not section.get("client_secret"):
                    problems.append("Client secret file is missing client_id or client_secret")

        if not self.anthropic_api_key and not os.environ.get("ANTHROPIC_API_KEY"):
            problems.append(
                "ANTHROPIC_API_KEY is not set; analysis will use the keyword fallback only"
            )

        if self.max_body_length <= 0:
            problems.append("MAX_BODY_LENGTH must be positive")

        return problems
