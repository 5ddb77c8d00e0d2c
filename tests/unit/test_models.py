"""Tests for domain models."""

import dataclasses

import pytest

from issue_pilot.models import Event, EventKind, Issue, Session, SessionState


def test_issue_is_immutable(sample_issue):
    """Issues do not change once fetched."""
    with pytest.raises(dataclasses.FrozenInstanceError):
        sample_issue.title = "other"


def test_issue_defaults():
    issue = Issue(number=1, title="t")

    assert issue.body == ""
    assert issue.url == ""


def test_new_session_is_pending(sample_issue):
    session = Session(issue=sample_issue)

    assert session.state is SessionState.PENDING
    assert session.number == 42
    assert session.plan is None
    assert session.publish_result is None
    assert session.last_error is None
    assert session.log == ""


def test_session_log_appends_in_order(sample_issue):
    session = Session(issue=sample_issue)

    session.append_log("a")
    session.append_log("")
    session.append_log("b\n")

    assert session.log == "ab\n"


def test_event_defaults():
    event = Event(issue_number=3, kind=EventKind.IMPLEMENTATION_READY)

    assert event.text == ""


@pytest.mark.parametrize(
    ("state", "terminal"),
    [
        (SessionState.PENDING, False),
        (SessionState.PLANNING, False),
        (SessionState.WAITING_APPROVAL, False),
        (SessionState.IMPLEMENTING, False),
        (SessionState.CREATING_PR, False),
        (SessionState.DONE, True),
        (SessionState.FAILED, True),
    ],
)
def test_terminal_states(state, terminal):
    assert state.is_terminal is terminal


def test_every_state_has_a_label():
    assert SessionState.WAITING_APPROVAL.label == "Needs approval"
    assert all(state.label for state in SessionState)
