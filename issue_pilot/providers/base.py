"""
Abstract base class for issue tracker integrations.

An IssueProvider is the engine's only window onto the hosted repository: it
lists the open issues an operator can choose from, and publishes a finished
workspace as a pull request that references its issue.

Implementations:
    - GitHubCliProvider: shells out to the ``gh`` CLI
    - GitHubRestProvider: talks to the GitHub REST API through PyGithub

Example:
    >>> provider = GitHubCliProvider(repo_root)
    >>> issues = await provider.list_open_issues(limit=20)
    >>> url = await provider.publish(workspaces, workspace, issues[0])
"""

from abc import ABC, abstractmethod

import structlog

from issue_pilot.exceptions import GitOperationError, PublishError
from issue_pilot.git.workspace import WorkspaceManager
from issue_pilot.models.domain import Issue, Workspace

log = structlog.get_logger(__name__)

PR_ATTRIBUTION = "Automatically implemented via issue-pilot."


def pull_request_title(issue: Issue) -> str:
    return f"Fix #{issue.number}: {issue.title}"


def pull_request_body(issue: Issue) -> str:
    return f"Closes #{issue.number}\n\n{PR_ATTRIBUTION}"


class IssueProvider(ABC):
    """Abstract base class for issue tracker implementations."""

    async def connect(self) -> None:
        """Prepare the client. No-op unless the implementation needs a session."""

    @abstractmethod
    async def list_open_issues(self, limit: int = 50) -> list[Issue]:
        """Return open issues, most recent first, at most ``limit`` of them.

        Raises:
            IssueSourceError: If the tracker query fails
        """
        pass

    @abstractmethod
    async def open_pull_request(self, workspace: Workspace, title: str, body: str) -> str:
        """Open a pull request for the already-pushed workspace branch.

        Returns:
            URL of the pull request

        Raises:
            PublishError: If the tracker rejects the request
        """
        pass

    async def publish(self, workspaces: WorkspaceManager, workspace: Workspace, issue: Issue) -> str:
        """Commit leftover changes, push the branch, and open the pull request.

        Args:
            workspaces: Manager owning ``workspace`` (runs the git commands)
            workspace: The session's finished workspace
            issue: Issue the pull request closes

        Returns:
            URL of the pull request

        Raises:
            PublishError: If committing, pushing, or opening the request fails
        """
        title = pull_request_title(issue)
        try:
            await workspaces.commit_pending(workspace, title)
            await workspaces.push(workspace)
        except GitOperationError as e:
            raise PublishError(str(e)) from e

        url = await self.open_pull_request(workspace, title, pull_request_body(issue))
        log.info("pull_request_opened", issue=issue.number, url=url)
        return url
