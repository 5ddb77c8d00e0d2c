"""Terminal presentation for the run command.

Everything the operator sees goes through ConsoleDashboard: issue listings,
the interleaved per-session output (every line prefixed with its issue
number), approval prompts and the closing summary. Logs go to stderr or a
log file and never pass through here.
"""

import asyncio
import contextlib
import threading
from collections.abc import Callable, Iterable, Iterator

import click

from issue_pilot.models.domain import Event, EventKind, Issue, Session, SessionState

_STATE_COLORS = {
    SessionState.DONE: "green",
    SessionState.FAILED: "red",
    SessionState.WAITING_APPROVAL: "yellow",
}


def parse_selection(text: str, issues: Iterable[Issue]) -> list[Issue]:
    """Resolve a comma-separated list of issue numbers against ``issues``.

    Order follows the input; duplicates are dropped.

    Raises:
        ValueError: If an entry is not a number or not among ``issues``
    """
    by_number = {issue.number: issue for issue in issues}
    selected: list[Issue] = []
    for part in text.replace(" ", ",").split(","):
        part = part.strip().lstrip("#")
        if not part:
            continue
        try:
            number = int(part)
        except ValueError as e:
            raise ValueError(f"not an issue number: {part!r}") from e
        if number not in by_number:
            raise ValueError(f"#{number} is not an open issue")
        if by_number[number] not in selected:
            selected.append(by_number[number])
    return selected


async def confirm(question: str, default: bool = False) -> bool:
    """Ask a yes/no question without blocking the event loop.

    The prompt runs in a daemon thread so an interrupted run can exit while
    the question is still open. End of input counts as "no".
    """
    loop = asyncio.get_running_loop()
    answer: asyncio.Future[bool] = loop.create_future()

    def resolve(value: bool) -> None:
        if not answer.done():
            answer.set_result(value)

    def ask() -> None:
        try:
            value = click.confirm(question, default=default)
        except (click.Abort, EOFError):
            value = False
        with contextlib.suppress(RuntimeError):  # loop already closed
            loop.call_soon_threadsafe(resolve, value)

    threading.Thread(target=ask, name="approval-prompt", daemon=True).start()
    return await answer


class ConsoleDashboard:
    """Renders session events to the terminal, keyed by issue number.

    Agent output arrives in arbitrary chunks; each session keeps its own
    partial line until a newline completes it, so lines from different
    sessions never mix. While ``held()`` is active (an approval prompt is
    open) rendered lines are buffered and printed afterwards.
    """

    def __init__(self, echo: Callable[[str], None] = click.echo) -> None:
        self._echo = echo
        self._partial: dict[int, str] = {}
        self._held: list[str] | None = None

    def _emit(self, line: str) -> None:
        if self._held is not None:
            self._held.append(line)
        else:
            self._echo(line)

    def _line(self, issue_number: int, text: str) -> None:
        self._emit(f"{click.style(f'#{issue_number}', bold=True)} │ {text}")

    @contextlib.contextmanager
    def held(self) -> Iterator[None]:
        """Buffer session output for the duration of the block."""
        self._held = []
        try:
            yield
        finally:
            buffered, self._held = self._held, None
            for line in buffered:
                self._echo(line)

    def show_issues(self, issues: list[Issue]) -> None:
        if not issues:
            self._echo("No open issues.")
            return
        width = max(len(str(issue.number)) for issue in issues)
        for issue in issues:
            self._echo(f"  #{issue.number:<{width}}  {issue.title}")

    def show_event(self, event: Event) -> None:
        number = event.issue_number

        if event.kind is EventKind.OUTPUT:
            pending = self._partial.get(number, "") + event.text
            *lines, rest = pending.split("\n")
            for line in lines:
                self._line(number, line)
            self._partial[number] = rest
            return

        self.flush(number)
        if event.kind is EventKind.PLAN_READY:
            self._line(number, click.style("plan ready, waiting for approval", fg="yellow"))
        elif event.kind is EventKind.IMPLEMENTATION_READY:
            self._line(number, "implementation finished")
        elif event.kind is EventKind.PUBLISH_READY:
            self._line(number, click.style(f"✓ Pull request: {event.text}", fg="green"))
        elif event.kind is EventKind.ERROR:
            self._line(number, click.style(f"✗ {event.text}", fg="red"))

    def flush(self, issue_number: int) -> None:
        """Print whatever partial line the session has buffered."""
        rest = self._partial.pop(issue_number, "")
        if rest:
            self._line(issue_number, rest)

    def show_plan(self, session: Session) -> None:
        self._echo("")
        self._echo(click.style(f"Plan for #{session.number}: {session.issue.title}", bold=True))
        self._echo("─" * 60)
        self._echo((session.plan or "").rstrip())
        self._echo("─" * 60)

    def show_summary(self, sessions: Iterable[Session]) -> None:
        self._echo("")
        self._echo(click.style("Summary", bold=True))
        for session in sessions:
            label = click.style(f"{session.state.label:<15}", fg=_STATE_COLORS.get(session.state))
            detail = session.publish_result or session.last_error or ""
            self._echo(f"  #{session.number:<6} {label} {detail}".rstrip())
