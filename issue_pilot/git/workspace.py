"""Workspace lifecycle: one git worktree and branch per issue.

Workspace paths and branch names derive only from the issue number, so a
rerun for the same issue always targets the same location. Leftovers from a
crashed earlier run are force-removed before the fresh worktree is added;
no partial workspace is ever resumed.

Example:
    >>> manager = WorkspaceManager(Path("/repo"))
    >>> workspace = await manager.create(42)
    >>> workspace.path, workspace.branch
    (PosixPath('/repo/.worktrees/42'), 'issue-42')
"""

import contextlib
import subprocess
from pathlib import Path

import structlog

from issue_pilot.exceptions import GitOperationError, WorkspaceError
from issue_pilot.models.domain import Workspace
from issue_pilot.utils.async_subprocess import command_output, run_command

log = structlog.get_logger(__name__)


class WorkspaceManager:
    """Create and remove per-issue worktrees under a shared root.

    The root directory is shared only as a parent path; each session gets its
    own subdirectory and branch, so concurrent sessions never collide.

    Attributes:
        repo_root: Main working tree of the repository
        directory: Worktree directory, relative to ``repo_root``
        branch_prefix: Prefix prepended to the issue number to name branches
    """

    def __init__(
        self,
        repo_root: Path,
        directory: str = ".worktrees",
        branch_prefix: str = "issue-",
    ) -> None:
        self.repo_root = Path(repo_root)
        self.directory = directory
        self.branch_prefix = branch_prefix

    @property
    def root(self) -> Path:
        return self.repo_root / self.directory

    def workspace_for(self, issue_number: int) -> Workspace:
        """Derive the workspace identity for an issue without touching disk."""
        return Workspace(
            issue_number=issue_number,
            path=self.root / str(issue_number),
            branch=f"{self.branch_prefix}{issue_number}",
        )

    async def create(self, issue_number: int) -> Workspace:
        """Create a fresh worktree on a new branch for ``issue_number``.

        Raises:
            WorkspaceError: If ``git worktree add`` fails
        """
        workspace = self.workspace_for(issue_number)

        # stale leftovers; failures here surface in the add below
        with contextlib.suppress(OSError):
            await self._git("worktree", "remove", "--force", str(workspace.path), check=False)
            await self._git("branch", "-D", workspace.branch, check=False)

        try:
            await self._git("worktree", "add", "-b", workspace.branch, str(workspace.path))
        except subprocess.CalledProcessError as e:
            log.error("workspace_create_failed", issue=issue_number, path=str(workspace.path))
            raise WorkspaceError("create worktree", output=command_output(e)) from e
        except OSError as e:
            raise WorkspaceError(f"create worktree: {e}") from e

        log.info("workspace_created", issue=issue_number, path=str(workspace.path), branch=workspace.branch)
        return workspace

    async def destroy(self, workspace: Workspace) -> None:
        """Remove the worktree. Best effort: failures are logged, never raised."""
        try:
            _, stderr, code = await self._git("worktree", "remove", "--force", str(workspace.path), check=False)
        except OSError as e:
            log.warning("workspace_destroy_failed", issue=workspace.issue_number, error=str(e))
            return

        if code != 0:
            log.warning("workspace_destroy_failed", issue=workspace.issue_number, error=stderr.strip())
        else:
            log.info("workspace_destroyed", issue=workspace.issue_number, path=str(workspace.path))

    async def commit_pending(self, workspace: Workspace, message: str) -> bool:
        """Stage and commit any uncommitted changes in the workspace.

        Returns:
            True if a commit was made, False if the tree was already clean

        Raises:
            GitOperationError: If staging or committing fails
        """
        try:
            await run_command("git", "add", "-A", cwd=workspace.path)
            status, _, _ = await run_command("git", "status", "--porcelain", cwd=workspace.path)
            if not status.strip():
                log.info("no_changes_to_commit", issue=workspace.issue_number)
                return False
            await run_command("git", "commit", "-m", message, cwd=workspace.path)
        except subprocess.CalledProcessError as e:
            raise GitOperationError("git commit", output=command_output(e)) from e

        log.info("changes_committed", issue=workspace.issue_number, branch=workspace.branch)
        return True

    async def push(self, workspace: Workspace, remote: str = "origin") -> None:
        """Push the workspace branch and set its upstream.

        Raises:
            GitOperationError: If the push fails
        """
        try:
            await run_command("git", "push", "-u", remote, "HEAD", cwd=workspace.path)
        except subprocess.CalledProcessError as e:
            raise GitOperationError("git push", output=command_output(e)) from e

        log.info("branch_pushed", issue=workspace.issue_number, branch=workspace.branch, remote=remote)

    async def _git(self, *args: str, check: bool = True) -> tuple[str, str, int]:
        return await run_command("git", "-C", str(self.repo_root), *args, check=check)
