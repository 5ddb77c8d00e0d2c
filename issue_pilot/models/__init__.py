"""Domain models shared across issue-pilot."""

from issue_pilot.models.domain import Event, EventKind, Issue, Session, SessionState, Workspace

__all__ = [
    "Event",
    "EventKind",
    "Issue",
    "Session",
    "SessionState",
    "Workspace",
]
