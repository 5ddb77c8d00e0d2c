"""
Session orchestrator and event bus.

The SessionOrchestrator runs one asyncio task per selected issue and
multiplexes every session's events onto a single bounded queue. The
consumer drains that queue through ``events()``, which applies each event
to its Session before yielding it, and steers suspended sessions with
``decide()``.

Concurrency Model:
    - one task per session, no limit beyond the number of issues started
    - one shared ``asyncio.Queue`` (many producers, one consumer); producers
      wait when it is full, so no event is ever dropped
    - one ApprovalGate per session (one producer, one consumer, one slot)

    Events from one session arrive in the order that session sent them.
    Nothing is promised about ordering across sessions; consumers must key
    events by ``Event.issue_number``.

Example:
    >>> orchestrator = SessionOrchestrator(runner, event_buffer=64)
    >>> orchestrator.start(issues)
    >>> async for event in orchestrator.events():
    ...     if event.kind is EventKind.PLAN_READY:
    ...         orchestrator.decide(event.issue_number, approved=True)
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass

import structlog

from issue_pilot.engine.gate import ApprovalGate
from issue_pilot.engine.session import SessionRunner
from issue_pilot.engine.state_machine import apply_event, transition
from issue_pilot.exceptions import SessionConflictError
from issue_pilot.models.domain import Event, EventKind, Issue, Session, SessionState

log = structlog.get_logger(__name__)

CANCELLED_MESSAGE = "session cancelled"
_FINAL_KINDS = frozenset({EventKind.PUBLISH_READY, EventKind.ERROR})


@dataclass(frozen=True)
class _SessionFinished:
    """Queued after a session's last event so the consumer can count down."""

    issue_number: int


class SessionOrchestrator:
    """Run sessions concurrently and dispatch their events.

    Attributes:
        runner: Shared session driver
        sessions: Session records keyed by issue number, in start order
    """

    def __init__(self, runner: SessionRunner, event_buffer: int = 64) -> None:
        self.runner = runner
        self.sessions: dict[int, Session] = {}
        self._gates: dict[int, ApprovalGate] = {}
        self._tasks: dict[int, asyncio.Task[None]] = {}
        self._queue: asyncio.Queue[Event | _SessionFinished] = asyncio.Queue(maxsize=event_buffer)
        self._running = 0

    def start(self, issues: Iterable[Issue]) -> dict[int, Session]:
        """Start one session per issue. Must be called from a running event loop.

        Args:
            issues: Issues to work on; numbers must be unique

        Returns:
            The newly created sessions, keyed by issue number

        Raises:
            SessionConflictError: If an issue already has a non-terminal
                session, or appears twice. Nothing is started in that case.
        """
        issues = list(issues)
        seen: set[int] = set()
        for issue in issues:
            existing = self.sessions.get(issue.number)
            if issue.number in seen or (existing is not None and not existing.state.is_terminal):
                raise SessionConflictError(issue.number)
            seen.add(issue.number)

        started: dict[int, Session] = {}
        for issue in issues:
            session = Session(issue=issue)
            transition(session, SessionState.PLANNING)
            gate = ApprovalGate()

            self.sessions[issue.number] = session
            self._gates[issue.number] = gate
            self._running += 1
            self._tasks[issue.number] = asyncio.create_task(
                self._run_session(issue, gate),
                name=f"session-{issue.number}",
            )
            started[issue.number] = session

        log.info("sessions_started", issues=list(started))
        return started

    async def _run_session(self, issue: Issue, gate: ApprovalGate) -> None:
        ended = False

        async def publish(event: Event) -> None:
            nonlocal ended
            await self._queue.put(event)
            if event.kind in _FINAL_KINDS:
                ended = True

        try:
            await self.runner.run(issue, gate, publish)
        except asyncio.CancelledError:
            if not ended:
                log.warning("session_cancelled_mid_phase", issue=issue.number)
                await self._queue.put(Event(issue.number, EventKind.ERROR, CANCELLED_MESSAGE))
            raise
        finally:
            await self._queue.put(_SessionFinished(issue.number))

    def decide(self, issue_number: int, approved: bool) -> bool:
        """Deliver the operator's decision to a session waiting for approval.

        Never blocks. Returns False, and changes nothing, when the session
        does not exist, is not waiting, or has already been decided.
        """
        session = self.sessions.get(issue_number)
        gate = self._gates.get(issue_number)
        if session is None or gate is None:
            log.warning("decision_for_unknown_session", issue=issue_number)
            return False
        if session.state is not SessionState.WAITING_APPROVAL or gate.resolved:
            log.info("decision_ignored", issue=issue_number, state=session.state.value)
            return False

        gate.deliver(approved)
        if approved:
            transition(session, SessionState.IMPLEMENTING)
        log.info("decision_delivered", issue=issue_number, approved=approved)
        return True

    def cancel(self) -> None:
        """Close every approval gate; waiting and future waits resolve to rejection."""
        for issue_number, gate in self._gates.items():
            if gate.close():
                log.info("gate_closed", issue=issue_number)

    def gate(self, issue_number: int) -> ApprovalGate | None:
        return self._gates.get(issue_number)

    @property
    def awaiting_approval(self) -> list[int]:
        """Issue numbers whose sessions can take a decision right now."""
        return [
            number
            for number, session in self.sessions.items()
            if session.state is SessionState.WAITING_APPROVAL and not self._gates[number].resolved
        ]

    @property
    def running(self) -> bool:
        """True while any session still has events to deliver."""
        return self._running > 0 or not self._queue.empty()

    def dispatch(self, event: Event) -> Session:
        """Apply ``event`` to its session and return that session."""
        session = self.sessions[event.issue_number]
        apply_event(session, event)
        return session

    async def events(self) -> AsyncIterator[Event]:
        """Yield every event, already applied, until all sessions have finished.

        Only one consumer may iterate at a time.
        """
        while self.running:
            item = await self._queue.get()
            if isinstance(item, _SessionFinished):
                self._running -= 1
                log.debug("session_finished", issue=item.issue_number)
                continue
            self.dispatch(item)
            yield item

    async def join(self) -> None:
        """Wait for every session task to return."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values())

    async def shutdown(self, grace: float = 5.0) -> None:
        """Stop all sessions, used when the operator interrupts a run.

        Gates are closed first so suspended sessions reject and tear down
        their workspaces. Sessions still running after ``grace`` seconds are
        cancelled, which kills their agent process and fails them with a
        "session cancelled" error. Remaining events are drained and applied,
        so the caller must not be iterating ``events()``.
        """
        self.cancel()
        pending = [task for task in self._tasks.values() if not task.done()]

        async def drain() -> None:
            async for _ in self.events():
                pass

        drainer = asyncio.create_task(drain(), name="event-drain")
        if pending:
            _, late = await asyncio.wait(pending, timeout=grace)
            for task in late:
                log.warning("session_cancelled", issue=task.get_name())
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        await drainer
