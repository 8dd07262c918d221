"""Gmail access: search query builder, message parser and per-user gateway.

The gateway pulls in google-api-python-client, so it is imported lazily:
    from mail_calendar_agent.gmail.client import MailGateway
"""

# Light imports only (no external deps)
from mail_calendar_agent.gmail import query
from mail_calendar_agent.gmail.models import BatchResult, MailMessage, MessageRef


def __getattr__(name):
    """Lazy imports for names that require third-party packages."""
    if name == "MailGateway":
        from mail_calendar_agent.gmail.client import MailGateway
        return MailGateway
    if name == "parse_message":
        from mail_calendar_agent.gmail.parser import parse_message
        return parse_message
    raise AttributeError(f"module 'mail_calendar_agent.gmail' has no attribute {name!r}")


__all__ = [
    "MailGateway",
    "BatchResult",
    "MailMessage",
    "MessageRef",
    "parse_message",
    "query",
]
