"""
Domain models for issue-pilot.

This module contains the data classes and enums shared by the engine, the
issue providers and the console: issues fetched from the tracker, the
per-issue session record, the events sessions emit, and the isolated
workspace each session runs in.

The issue number is the identity key across all of them: a Session, every
Event it emits, its Workspace and its approval gate are all looked up by
``Issue.number``.

Example:
    Creating a session for an issue::

        issue = Issue(number=42, title="fix bug", body="NPE on null input")
        session = Session(issue=issue)
        assert session.state is SessionState.PENDING
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class SessionState(str, Enum):
    """Lifecycle stage of a session.

    The happy path is:
    PENDING -> PLANNING -> WAITING_APPROVAL -> IMPLEMENTING -> CREATING_PR -> DONE

    FAILED is reachable from every in-flight state and is absorbing.
    """

    PENDING = "pending"
    """Allocated, not yet started."""

    PLANNING = "planning"
    """Workspace setup and plan phase are running."""

    WAITING_APPROVAL = "waiting_approval"
    """Plan is ready; the session is suspended on its approval gate."""

    IMPLEMENTING = "implementing"
    """Plan approved; the implementation phase is running."""

    CREATING_PR = "creating_pr"
    """Implementation succeeded; the branch is being published."""

    DONE = "done"
    """Pull request opened."""

    FAILED = "failed"
    """Terminal failure or rejection."""

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.FAILED)

    @property
    def label(self) -> str:
        """Short human label for status lines."""
        return _STATE_LABELS[self]


_STATE_LABELS = {
    SessionState.PENDING: "Pending",
    SessionState.PLANNING: "Planning",
    SessionState.WAITING_APPROVAL: "Needs approval",
    SessionState.IMPLEMENTING: "Implementing",
    SessionState.CREATING_PR: "Creating PR",
    SessionState.DONE: "Done",
    SessionState.FAILED: "Failed",
}


class EventKind(str, Enum):
    """Classification of events sent from a session to the dispatcher."""

    OUTPUT = "output"
    """Incremental text to append to the session log."""

    PLAN_READY = "plan_ready"
    """Plan phase finished; ``text`` carries the plan."""

    IMPLEMENTATION_READY = "implementation_ready"
    """Implementation phase finished."""

    PUBLISH_READY = "publish_ready"
    """Pull request opened; ``text`` carries its URL."""

    ERROR = "error"
    """Unrecoverable failure or rejection; ``text`` carries the reason."""


@dataclass(frozen=True)
class Issue:
    """An open issue as returned by the tracker.

    Immutable once fetched. ``url`` is informational and may be empty when
    the provider does not report one.
    """

    number: int
    title: str
    body: str = ""
    url: str = ""


@dataclass(frozen=True)
class Event:
    """A single notification from a running session.

    Events are the only channel through which a session reports progress.
    They are ordered per session and interleaved arbitrarily across sessions,
    so consumers must key them by ``issue_number``.
    """

    issue_number: int
    kind: EventKind
    text: str = ""


@dataclass(frozen=True)
class Workspace:
    """An isolated git worktree on its own branch, one per session."""

    issue_number: int
    path: Path
    branch: str


@dataclass
class Session:
    """State of one issue undergoing automation.

    Fields are written only by the dispatcher that applies this session's
    events (see ``issue_pilot.engine.state_machine.apply_event``); everyone
    else treats a Session as read-only.

    Attributes:
        issue: The issue this session works on.
        state: Current lifecycle stage.
        plan: Plan text, set once when the plan phase completes.
        publish_result: Pull request URL, set once on success.
        last_error: Failure text, set once on terminal failure.
    """

    issue: Issue
    state: SessionState = SessionState.PENDING
    plan: str | None = None
    publish_result: str | None = None
    last_error: str | None = None
    _log: list[str] = field(default_factory=list, repr=False)

    @property
    def number(self) -> int:
        return self.issue.number

    @property
    def log(self) -> str:
        """Everything appended to the session log, in arrival order."""
        return "".join(self._log)

    def append_log(self, text: str) -> None:
        if text:
            self._log.append(text)
