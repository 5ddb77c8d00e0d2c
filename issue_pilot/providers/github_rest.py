"""GitHub provider implementation using PyGithub and the REST API."""

import asyncio
from collections.abc import Callable
from typing import TypeVar

import structlog
from github import Auth, Github, GithubException
from github.Issue import Issue as GHIssue
from github.Repository import Repository as GHRepository

from issue_pilot.exceptions import IssueSourceError, PublishError
from issue_pilot.models.domain import Issue, Workspace
from issue_pilot.providers.base import IssueProvider

log = structlog.get_logger(__name__)

T = TypeVar("T")


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a blocking PyGithub call in a worker thread."""
    return await asyncio.to_thread(func)


class GitHubRestProvider(IssueProvider):
    """GitHub implementation using the PyGithub library."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = "https://api.github.com",
        base_branch: str | None = None,
    ) -> None:
        """Initialize GitHub provider.

        Args:
            token: GitHub personal access token or App token
            owner: Repository owner (user or organization)
            repo: Repository name
            base_url: GitHub API base URL (for GitHub Enterprise)
            base_branch: Pull request base; the repository default when None
        """
        self.token = token.strip()
        self.owner = owner
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self.base_branch = base_branch
        self._client: Github | None = None
        self._repo: GHRepository | None = None

    async def connect(self) -> None:
        """Initialize the GitHub client and resolve the repository."""

        def _connect() -> tuple[Github, GHRepository]:
            client = Github(auth=Auth.Token(self.token), base_url=self.base_url)
            return client, client.get_repo(f"{self.owner}/{self.repo}")

        try:
            self._client, self._repo = await _run_sync(_connect)
        except GithubException as e:
            log.error("github_connect_failed", owner=self.owner, repo=self.repo, error=str(e))
            raise IssueSourceError(f"connect to {self.owner}/{self.repo}: {e}", status_code=e.status) from e

        log.info("github_connected", base_url=self.base_url, owner=self.owner, repo=self.repo)

    async def disconnect(self) -> None:
        """Close the GitHub client."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repo = None

    async def list_open_issues(self, limit: int = 50) -> list[Issue]:
        """Retrieve open issues, newest first, skipping pull requests."""
        log.info("list_open_issues", limit=limit)
        repo = await self._repository()

        def _list() -> list[GHIssue]:
            found = []
            for gh_issue in repo.get_issues(state="open", sort="created", direction="desc"):
                if gh_issue.pull_request is not None:
                    continue
                found.append(gh_issue)
                if len(found) >= limit:
                    break
            return found

        try:
            gh_issues = await _run_sync(_list)
        except GithubException as e:
            log.error("github_list_issues_failed", error=str(e))
            raise IssueSourceError(f"list issues: {e}", status_code=e.status) from e

        return [self._convert_issue(gh_issue) for gh_issue in gh_issues]

    async def open_pull_request(self, workspace: Workspace, title: str, body: str) -> str:
        """Open a pull request from the workspace branch."""
        log.info("create_pull_request", title=title, head=workspace.branch)
        repo = await self._repository()

        def _create_pr() -> str:
            base = self.base_branch or repo.default_branch
            gh_pr = repo.create_pull(title=title, body=body, head=workspace.branch, base=base)
            return gh_pr.html_url

        try:
            return await _run_sync(_create_pr)
        except GithubException as e:
            log.error("github_create_pr_failed", issue=workspace.issue_number, error=str(e))
            raise PublishError(f"create pull request: {e}", status_code=e.status) from e

    async def _repository(self) -> GHRepository:
        if self._repo is None:
            await self.connect()
        assert self._repo is not None
        return self._repo

    @staticmethod
    def _convert_issue(gh_issue: GHIssue) -> Issue:
        """Convert a GitHub issue to our Issue model."""
        return Issue(
            number=gh_issue.number,
            title=gh_issue.title,
            body=gh_issue.body or "",
            url=gh_issue.html_url,
        )
