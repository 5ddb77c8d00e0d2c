"""End-to-end session tests: real git worktrees, fake agent CLI, in-memory tracker."""

import asyncio

import pytest

from issue_pilot.agents.runner import AgentRunner
from issue_pilot.engine.orchestrator import SessionOrchestrator
from issue_pilot.engine.session import PLANNING_HEADER, SessionRunner
from issue_pilot.git.workspace import WorkspaceManager
from issue_pilot.models.domain import EventKind, SessionState

pytestmark = pytest.mark.integration


def _orchestrator(git_repo, agent_config, provider):
    workspaces = WorkspaceManager(git_repo)
    runner = SessionRunner(workspaces, AgentRunner(agent_config), provider)
    return SessionOrchestrator(runner, event_buffer=64)


async def _drive(orchestrator, approve=True):
    """Consume all events, deciding each plan as soon as it is observed."""
    seen = []
    async for event in orchestrator.events():
        seen.append(event)
        if event.kind is EventKind.PLAN_READY:
            assert orchestrator.decide(event.issue_number, approve)
    return seen


@pytest.mark.asyncio
async def test_approved_issue_becomes_pull_request(
    git_repo, run_git, sample_issue, fake_provider, fake_agent, stream_lines, tmp_path
):
    agent = fake_agent(
        [
            stream_lines.init,
            stream_lines.assistant("1. Check for None before dereferencing.\n"),
            stream_lines.result("PLAN COMPLETE"),
        ],
        implement_lines=[stream_lines.assistant("Added the guard.\n"), stream_lines.result("Implemented.")],
        write_file="guard.py",
    )
    orchestrator = _orchestrator(git_repo, agent, fake_provider)
    orchestrator.start([sample_issue])

    states = []

    async def consume():
        async for event in orchestrator.events():
            states.append(orchestrator.sessions[42].state)
            if event.kind is EventKind.PLAN_READY:
                orchestrator.decide(42, True)
                states.append(orchestrator.sessions[42].state)

    await asyncio.wait_for(consume(), timeout=60)

    session = orchestrator.sessions[42]
    assert session.state is SessionState.DONE
    assert session.plan == "1. Check for None before dereferencing.\nPLAN COMPLETE"
    assert session.publish_result == "https://github.com/acme/widgets/pull/42"
    assert states.index(SessionState.WAITING_APPROVAL) < states.index(SessionState.IMPLEMENTING)
    assert states.index(SessionState.IMPLEMENTING) < states.index(SessionState.CREATING_PR)
    assert session.log.startswith(PLANNING_HEADER)
    assert "[session started]\n" in session.log
    assert "Added the guard." in session.log
    assert session.log.endswith("✓ Pull request: https://github.com/acme/widgets/pull/42\n")

    # the change was committed on the issue branch and pushed
    workspace, title, body = fake_provider.opened[0]
    assert title == "Fix #42: fix bug"
    assert body.startswith("Closes #42")
    assert run_git(workspace.path, "log", "-1", "--format=%s").strip() == "Fix #42: fix bug"
    assert "issue-42" in run_git(tmp_path / "origin.git", "branch", "--list", "issue-42")


@pytest.mark.asyncio
async def test_plan_error_result_fails_session(git_repo, sample_issue, fake_provider, fake_agent, stream_lines):
    agent = fake_agent([stream_lines.result(error="disk full")])
    orchestrator = _orchestrator(git_repo, agent, fake_provider)
    orchestrator.start([sample_issue])

    events = await asyncio.wait_for(_drive(orchestrator), timeout=60)

    session = orchestrator.sessions[42]
    assert session.state is SessionState.FAILED
    assert session.last_error == "disk full"
    assert session.plan is None
    assert [e.kind for e in events if e.kind is not EventKind.OUTPUT] == [EventKind.ERROR]
    assert fake_provider.opened == []


@pytest.mark.asyncio
async def test_rejected_plan_removes_workspace(
    git_repo, sample_issue, fake_provider, fake_agent, stream_lines, agent_calls
):
    agent = fake_agent([stream_lines.assistant("plan"), stream_lines.result("PLAN COMPLETE")])
    orchestrator = _orchestrator(git_repo, agent, fake_provider)
    orchestrator.start([sample_issue])

    await asyncio.wait_for(_drive(orchestrator, approve=False), timeout=60)

    session = orchestrator.sessions[42]
    assert session.state is SessionState.FAILED
    assert session.last_error == "plan rejected or session cancelled"
    assert not (git_repo / ".worktrees" / "42").exists()
    assert len(agent_calls()) == 1


@pytest.mark.asyncio
async def test_concurrent_sessions_stay_isolated(
    git_repo, run_git, fake_provider, fake_agent, stream_lines, agent_calls
):
    agent = fake_agent(
        [stream_lines.assistant("plan text\n"), stream_lines.result("PLAN COMPLETE")],
        implement_lines=[stream_lines.result("ok")],
        write_file="change.txt",
        delay=0.05,
    )
    orchestrator = _orchestrator(git_repo, agent, fake_provider)
    orchestrator.start(fake_provider.issues)

    await asyncio.wait_for(_drive(orchestrator), timeout=120)

    for issue in fake_provider.issues:
        session = orchestrator.sessions[issue.number]
        assert session.state is SessionState.DONE
        assert session.publish_result.endswith(f"/pull/{issue.number}")
        path = git_repo / ".worktrees" / str(issue.number)
        assert run_git(path, "rev-parse", "--abbrev-ref", "HEAD").strip() == f"issue-{issue.number}"

    cwds = {call["cwd"] for call in agent_calls()}
    assert len(cwds) == 2
    assert sorted(workspace.branch for workspace, _, _ in fake_provider.opened) == ["issue-42", "issue-7"]
