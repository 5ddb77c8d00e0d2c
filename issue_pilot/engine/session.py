"""
Per-issue session driver.

A SessionRunner sequences one issue through its phases and reports every
observable step as an Event:

    1. Create the issue's workspace
    2. Plan phase (agent, no tool allow-list by default)  -> PLAN_READY
    3. Suspend on the approval gate
    4. Implementation phase (agent, edit tools allowed)    -> IMPLEMENTATION_READY
    5. Publish the branch as a pull request                -> PUBLISH_READY

Any failure ends the session with exactly one ERROR event. Rejection is a
failure too: the workspace is torn down first, then the ERROR event is
sent. A publish failure leaves the workspace and branch in place so the
implemented change is not lost.

The runner does no state bookkeeping of its own; the dispatcher derives
session state from the events (see ``issue_pilot.engine.state_machine``).
"""

from collections.abc import Awaitable, Callable

import structlog

from issue_pilot.agents.prompts import build_implementation_prompt, build_plan_prompt
from issue_pilot.agents.runner import AgentRunner
from issue_pilot.config.settings import AgentConfig
from issue_pilot.engine.gate import ApprovalGate
from issue_pilot.exceptions import IssuePilotError
from issue_pilot.git.workspace import WorkspaceManager
from issue_pilot.models.domain import Event, EventKind, Issue
from issue_pilot.providers.base import IssueProvider

log = structlog.get_logger(__name__)

EventPublisher = Callable[[Event], Awaitable[None]]

PLANNING_HEADER = "=== Planning phase ===\n"
IMPLEMENTATION_HEADER = "\n=== Implementation phase ===\n"
PUBLISH_HEADER = "\n=== Creating PR ===\n"
REJECTED_MESSAGE = "plan rejected or session cancelled"


class SessionRunner:
    """Drive sessions through plan, approval, implementation and publish.

    One runner is shared by every session of an orchestrator; it keeps no
    per-issue state, so any number of ``run`` calls may be in flight.

    Attributes:
        workspaces: Creates and removes per-issue worktrees
        agent: Runs the agent CLI for a phase
        provider: Publishes finished workspaces
        agent_config: Tool allow-lists for each phase
    """

    def __init__(
        self,
        workspaces: WorkspaceManager,
        agent: AgentRunner,
        provider: IssueProvider,
        agent_config: AgentConfig | None = None,
    ) -> None:
        self.workspaces = workspaces
        self.agent = agent
        self.provider = provider
        self.agent_config = agent_config or agent.config

    async def run(self, issue: Issue, gate: ApprovalGate, publish: EventPublisher) -> None:
        """Run one session to its terminal event.

        Never raises for session-level failures; they become the ERROR event.
        """
        async def send(kind: EventKind, text: str = "") -> None:
            await publish(Event(issue_number=issue.number, kind=kind, text=text))

        with structlog.contextvars.bound_contextvars(issue=issue.number):
            log.info("session_started", title=issue.title)
            try:
                await self._run(issue, gate, send)
            except Exception as e:
                log.error("session_crashed", error=str(e), exc_info=True)
                await send(EventKind.ERROR, str(e) or type(e).__name__)

    async def _run(
        self,
        issue: Issue,
        gate: ApprovalGate,
        send: Callable[[EventKind, str], Awaitable[None]],
    ) -> None:
        async def output(text: str) -> None:
            await send(EventKind.OUTPUT, text)

        # --- workspace ---
        try:
            workspace = await self.workspaces.create(issue.number)
        except IssuePilotError as e:
            log.error("session_setup_failed", error=str(e))
            await send(EventKind.ERROR, str(e))
            return

        # --- plan ---
        await output(PLANNING_HEADER)
        plan = await self.agent.run_phase(
            workspace.path,
            build_plan_prompt(issue),
            output,
            allowed_tools=self.agent_config.plan_allowed_tools or None,
            phase="planning",
        )
        if not plan.success:
            log.warning("plan_phase_failed", error=str(plan.error))
            await send(EventKind.ERROR, str(plan.error))
            return
        await send(EventKind.PLAN_READY, plan.transcript)

        # --- approval ---
        log.info("awaiting_approval")
        if not await gate.wait():
            log.info("plan_rejected", cancelled=gate.closed)
            await self.workspaces.destroy(workspace)
            await send(EventKind.ERROR, REJECTED_MESSAGE)
            return

        # --- implement ---
        await output(IMPLEMENTATION_HEADER)
        implementation = await self.agent.run_phase(
            workspace.path,
            build_implementation_prompt(issue, plan.transcript),
            output,
            allowed_tools=self.agent_config.implement_allowed_tools or None,
            phase="implementation",
        )
        if not implementation.success:
            log.warning("implementation_phase_failed", error=str(implementation.error))
            await send(EventKind.ERROR, str(implementation.error))
            return
        await send(EventKind.IMPLEMENTATION_READY, "")

        # --- publish ---
        await output(PUBLISH_HEADER)
        try:
            url = await self.provider.publish(self.workspaces, workspace, issue)
        except IssuePilotError as e:
            log.error("publish_failed", error=str(e))
            await send(EventKind.ERROR, str(e))
            return

        log.info("session_done", url=url)
        await send(EventKind.PUBLISH_READY, url)
