"""Unified exception hierarchy for mail-calendar-agent."""


class AgentError(Exception):
    """Base exception for all agent errors."""


# Credentials
class CredentialError(AgentError):
    """User is not authorized, or stored tokens cannot be used."""


# Gmail
class GmailError(AgentError):
    """Base exception for Gmail operations."""


class GmailFetchError(GmailError):
    """Failed to list or fetch Gmail messages."""


# Calendar
class CalendarError(AgentError):
    """Base exception for calendar operations."""


# LLM
class LLMError(AgentError):
    """Base exception for LLM client operations."""


# Storage
class StorageError(AgentError):
    """Failed to read or write the agent database."""
