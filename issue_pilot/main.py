"""CLI entry point for issue-pilot."""

import asyncio
import sys
from pathlib import Path

import click
import structlog

from issue_pilot.agents.runner import AgentRunner
from issue_pilot.config.settings import PilotSettings
from issue_pilot.console import ConsoleDashboard, confirm, parse_selection
from issue_pilot.engine.orchestrator import SessionOrchestrator
from issue_pilot.engine.session import SessionRunner
from issue_pilot.exceptions import ConfigurationError, IssuePilotError
from issue_pilot.git.discovery import GitDiscovery
from issue_pilot.git.workspace import WorkspaceManager
from issue_pilot.models.domain import EventKind, Issue, Session, SessionState
from issue_pilot.providers.base import IssueProvider
from issue_pilot.providers.factory import create_provider
from issue_pilot.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option("--config", default=None, help="Path to configuration file (defaults apply when omitted)")
@click.option("--log-level", default="WARNING", help="Logging level")
@click.option("--log-file", default=None, help="Write logs to this file instead of stderr")
@click.option("--repo", default=None, help="Repository root (default: discovered from the current directory)")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str, log_file: str | None, repo: str | None) -> None:
    """issue-pilot: turn GitHub issues into pull requests with an AI agent."""
    configure_logging(log_level, log_file)

    if config is not None and not Path(config).exists():
        click.echo(f"Error: Configuration file not found: {config}", err=True)
        sys.exit(1)

    try:
        settings = PilotSettings.load(config)
        repo_root = GitDiscovery(repo or ".").repo_root
    except IssuePilotError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("startup_error", exc_info=True)
        sys.exit(1)

    log.debug("repository_root", path=str(repo_root))
    ctx.obj = {"settings": settings, "repo_root": repo_root}


@cli.command()
@click.pass_context
def issues(ctx: click.Context) -> None:
    """List open issues."""
    try:
        asyncio.run(_list_issues(ctx.obj["settings"], ctx.obj["repo_root"]))
    except IssuePilotError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("issues_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)


@cli.command()
@click.option("--issue", "issue_numbers", type=int, multiple=True, help="Issue number to work on (repeatable)")
@click.option("--yes", "auto_approve", is_flag=True, help="Approve every plan without asking")
@click.option("--no-check", is_flag=True, help="Skip checking that the agent CLI is installed")
@click.pass_context
def run(ctx: click.Context, issue_numbers: tuple[int, ...], auto_approve: bool, no_check: bool) -> None:
    """Plan, implement and open pull requests for selected issues."""
    try:
        sessions = asyncio.run(
            _run_sessions(
                ctx.obj["settings"],
                ctx.obj["repo_root"],
                list(issue_numbers),
                auto_approve=auto_approve,
                check_agent=not no_check,
            )
        )
    except IssuePilotError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("run_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error("run_unexpected", exc_info=True)
        sys.exit(1)

    if any(session.state is not SessionState.DONE for session in sessions):
        sys.exit(1)


@cli.command()
@click.option("--issue", "issue_numbers", type=int, multiple=True, required=True, help="Issue number (repeatable)")
@click.pass_context
def clean(ctx: click.Context, issue_numbers: tuple[int, ...]) -> None:
    """Remove workspaces left behind by earlier runs."""
    settings: PilotSettings = ctx.obj["settings"]
    workspaces = WorkspaceManager(
        ctx.obj["repo_root"],
        directory=settings.workspace.directory,
        branch_prefix=settings.workspace.branch_prefix,
    )

    async def remove_all() -> None:
        for number in issue_numbers:
            workspace = workspaces.workspace_for(number)
            if not workspace.path.exists():
                click.echo(f"#{number}: no workspace at {workspace.path}")
                continue
            await workspaces.destroy(workspace)
            state = "still present" if workspace.path.exists() else "removed"
            click.echo(f"#{number}: {state} {workspace.path}")

    try:
        asyncio.run(remove_all())
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)


async def _connect_provider(settings: PilotSettings, repo_root: Path) -> IssueProvider:
    provider = create_provider(settings, repo_root)
    await provider.connect()
    return provider


async def _list_issues(settings: PilotSettings, repo_root: Path) -> None:
    provider = await _connect_provider(settings, repo_root)
    issues = await provider.list_open_issues(limit=settings.issues.limit)
    ConsoleDashboard().show_issues(issues)


async def _select_issues(
    provider: IssueProvider,
    settings: PilotSettings,
    issue_numbers: list[int],
    dashboard: ConsoleDashboard,
) -> list[Issue]:
    """Resolve ``--issue`` numbers, or ask the operator to pick from the open issues."""
    open_issues = await provider.list_open_issues(limit=settings.issues.limit)

    if issue_numbers:
        try:
            return parse_selection(",".join(map(str, issue_numbers)), open_issues)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    dashboard.show_issues(open_issues)
    if not open_issues:
        return []
    while True:
        answer = await asyncio.to_thread(click.prompt, "Issues to work on (comma-separated numbers)")
        try:
            selected = parse_selection(answer, open_issues)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            continue
        if selected:
            return selected


async def _approve_plans(
    orchestrator: SessionOrchestrator,
    dashboard: ConsoleDashboard,
    ready: asyncio.Queue[int],
) -> None:
    """Ask for each plan in the order plans became ready, one prompt at a time."""
    while True:
        number = await ready.get()
        session = orchestrator.sessions[number]
        if number not in orchestrator.awaiting_approval:
            continue
        with dashboard.held():
            dashboard.show_plan(session)
            approved = await confirm(f"Approve plan for #{number}?")
        orchestrator.decide(number, approved)


async def _run_sessions(
    settings: PilotSettings,
    repo_root: Path,
    issue_numbers: list[int],
    auto_approve: bool = False,
    check_agent: bool = True,
) -> list[Session]:
    """Run one session per selected issue and return their final records."""
    dashboard = ConsoleDashboard()
    provider = await _connect_provider(settings, repo_root)
    agent = AgentRunner(settings.agent)
    if check_agent:
        await agent.check_available()

    selected = await _select_issues(provider, settings, issue_numbers, dashboard)
    if not selected:
        click.echo("Nothing to do.")
        return []

    workspaces = WorkspaceManager(
        repo_root,
        directory=settings.workspace.directory,
        branch_prefix=settings.workspace.branch_prefix,
    )
    orchestrator = SessionOrchestrator(
        SessionRunner(workspaces, agent, provider, settings.agent),
        event_buffer=settings.engine.event_buffer,
    )
    orchestrator.start(selected)

    ready: asyncio.Queue[int] = asyncio.Queue()
    approver = None if auto_approve else asyncio.create_task(_approve_plans(orchestrator, dashboard, ready))
    try:
        async for event in orchestrator.events():
            dashboard.show_event(event)
            if event.kind is EventKind.PLAN_READY:
                if auto_approve:
                    orchestrator.decide(event.issue_number, True)
                else:
                    ready.put_nowait(event.issue_number)
    except asyncio.CancelledError:
        log.info("run_interrupted")
        await orchestrator.shutdown()
        raise
    finally:
        if approver is not None:
            approver.cancel()
        for number in orchestrator.sessions:
            dashboard.flush(number)

    sessions = list(orchestrator.sessions.values())
    dashboard.show_summary(sessions)
    return sessions


if __name__ == "__main__":
    cli()
