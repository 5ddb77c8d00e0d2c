"""GitHub provider implementation using the ``gh`` CLI.

Relies on ``gh`` being installed and authenticated; it resolves the
repository from the git remotes of the directory it runs in.
"""

import json
import subprocess
from pathlib import Path
from typing import Any

import structlog

from issue_pilot.exceptions import IssueSourceError, PublishError
from issue_pilot.models.domain import Issue, Workspace
from issue_pilot.providers.base import IssueProvider
from issue_pilot.utils.async_subprocess import command_output, run_command

log = structlog.get_logger(__name__)


class GitHubCliProvider(IssueProvider):
    """Issue listing and pull request creation through ``gh``."""

    def __init__(self, repo_root: Path, executable: str = "gh") -> None:
        self.repo_root = Path(repo_root)
        self.executable = executable

    async def list_open_issues(self, limit: int = 50) -> list[Issue]:
        """Retrieve open issues via ``gh issue list``."""
        log.info("list_open_issues", limit=limit)

        try:
            stdout, _, _ = await run_command(
                self.executable,
                "issue",
                "list",
                "--state",
                "open",
                "--json",
                "number,title,body,url",
                "--limit",
                str(limit),
                cwd=self.repo_root,
            )
        except subprocess.CalledProcessError as e:
            log.error("gh_issue_list_failed", error=command_output(e))
            raise IssueSourceError(f"gh issue list: {command_output(e) or e}") from e
        except OSError as e:
            raise IssueSourceError(f"gh issue list: {e}") from e

        try:
            payload = json.loads(stdout or "[]")
            return [self._parse_issue(item) for item in payload][:limit]
        except (ValueError, TypeError, KeyError) as e:
            raise IssueSourceError(f"parse issues: {e}") from e

    async def open_pull_request(self, workspace: Workspace, title: str, body: str) -> str:
        """Open a pull request with ``gh pr create`` from inside the workspace."""
        try:
            stdout, _, _ = await run_command(
                self.executable,
                "pr",
                "create",
                "--title",
                title,
                "--body",
                body,
                "--head",
                workspace.branch,
                cwd=workspace.path,
            )
        except subprocess.CalledProcessError as e:
            log.error("gh_pr_create_failed", issue=workspace.issue_number, error=command_output(e))
            raise PublishError(f"gh pr create: {command_output(e) or e}") from e
        except OSError as e:
            raise PublishError(f"gh pr create: {e}") from e

        lines = [line.strip() for line in stdout.splitlines() if line.strip()]
        if not lines:
            raise PublishError("gh pr create: no pull request URL in output")
        # gh prints progress first and the URL last
        return lines[-1]

    @staticmethod
    def _parse_issue(data: dict[str, Any]) -> Issue:
        return Issue(
            number=int(data["number"]),
            title=data.get("title") or "",
            body=data.get("body") or "",
            url=data.get("url") or "",
        )
