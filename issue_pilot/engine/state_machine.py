"""
Session state machine.

Holds the transition table and the single function that folds a session's
events into its Session record. The dispatcher that owns the event stream is
the only caller of ``apply_event``; nothing else writes Session fields apart
from the two operator-driven moves the orchestrator makes directly
(PENDING -> PLANNING on start, WAITING_APPROVAL -> IMPLEMENTING on approval).

Transition table:

    PENDING           -> PLANNING
    PLANNING          -> WAITING_APPROVAL | FAILED
    WAITING_APPROVAL  -> IMPLEMENTING | FAILED
    IMPLEMENTING      -> CREATING_PR | FAILED
    CREATING_PR       -> DONE | FAILED
    DONE, FAILED      -> (terminal)
"""

from issue_pilot.exceptions import InvalidTransitionError
from issue_pilot.models.domain import Event, EventKind, Session, SessionState

TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.PENDING: frozenset({SessionState.PLANNING}),
    SessionState.PLANNING: frozenset({SessionState.WAITING_APPROVAL, SessionState.FAILED}),
    SessionState.WAITING_APPROVAL: frozenset({SessionState.IMPLEMENTING, SessionState.FAILED}),
    SessionState.IMPLEMENTING: frozenset({SessionState.CREATING_PR, SessionState.FAILED}),
    SessionState.CREATING_PR: frozenset({SessionState.DONE, SessionState.FAILED}),
    SessionState.DONE: frozenset(),
    SessionState.FAILED: frozenset(),
}

# state each non-output event moves its session into
EVENT_TARGETS: dict[EventKind, SessionState] = {
    EventKind.PLAN_READY: SessionState.WAITING_APPROVAL,
    EventKind.IMPLEMENTATION_READY: SessionState.CREATING_PR,
    EventKind.PUBLISH_READY: SessionState.DONE,
    EventKind.ERROR: SessionState.FAILED,
}


def can_transition(current: SessionState, target: SessionState) -> bool:
    return target in TRANSITIONS[current]


def transition(session: Session, target: SessionState) -> None:
    """Move ``session`` to ``target``.

    Raises:
        InvalidTransitionError: If the table has no such edge
    """
    if not can_transition(session.state, target):
        raise InvalidTransitionError(session.number, session.state.value, target.value)
    session.state = target


def apply_event(session: Session, event: Event) -> None:
    """Fold one event into the session it belongs to.

    Raises:
        ValueError: If the event belongs to a different issue
        InvalidTransitionError: If the event implies an illegal transition
    """
    if event.issue_number != session.number:
        raise ValueError(f"event for #{event.issue_number} applied to session #{session.number}")

    if event.kind is EventKind.OUTPUT:
        session.append_log(event.text)
        return

    transition(session, EVENT_TARGETS[event.kind])

    if event.kind is EventKind.PLAN_READY:
        session.plan = event.text
    elif event.kind is EventKind.PUBLISH_READY:
        session.publish_result = event.text
        session.append_log(f"\n✓ Pull request: {event.text}\n")
    elif event.kind is EventKind.ERROR:
        session.last_error = event.text
        session.append_log(f"\n✗ {event.text}\n")
