"""LLM client wrapper (Anthropic Claude)."""

from mail_calendar_agent.llm.client import DEFAULT_MODEL, Completion, LLMClient

__all__ = ["DEFAULT_MODEL", "Completion", "LLMClient"]
