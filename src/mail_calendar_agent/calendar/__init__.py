"""Google Calendar scheduling for emails with deadlines."""

from mail_calendar_agent.calendar.events import AGENT_MARKER, build_event_body, is_agent_event


def __getattr__(name):
    """Lazy import for the gateway, which needs google-api-python-client."""
    if name == "SchedulingGateway":
        from mail_calendar_agent.calendar.client import SchedulingGateway
        return SchedulingGateway
    raise AttributeError(f"module 'mail_calendar_agent.calendar' has no attribute {name!r}")


__all__ = ["AGENT_MARKER", "SchedulingGateway", "build_event_body", "is_agent_event"]
