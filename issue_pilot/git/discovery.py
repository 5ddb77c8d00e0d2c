"""Git repository discovery.

Finds the main working tree for the current directory and the GitHub
owner/repo behind a remote, so issue-pilot works from anywhere inside a
checkout without configuration.

Example:
    >>> discovery = GitDiscovery()
    >>> discovery.repo_root
    PosixPath('/home/me/project')
    >>> discovery.parse_repository()
    RepositoryInfo(owner='me', repo='project', remote_name='origin')
"""

import re
from dataclasses import dataclass
from pathlib import Path

import git
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from issue_pilot.exceptions import GitOperationError, NotGitRepositoryError


@dataclass(frozen=True)
class RepositoryInfo:
    """Owner and name of a hosted repository."""

    owner: str
    repo: str
    remote_name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


# git@github.com:owner/repo.git, user@host:owner/repo
SSH_PATTERN = re.compile(r"^(?P<user>\w+)@(?P<host>[a-zA-Z0-9._-]+):(?P<path>.+?)(?:\.git)?/?$")
# https://github.com/owner/repo(.git), ssh://git@host:22/owner/repo
URL_PATTERN = re.compile(
    r"^(?:https?|ssh)://(?:[^@/]+@)?(?P<host>[a-zA-Z0-9._-]+)(?::(?P<port>\d+))?/(?P<path>.+?)(?:\.git)?/?$"
)


def parse_remote_url(url: str) -> tuple[str, str]:
    """Extract (owner, repo) from an SSH or HTTPS remote URL.

    Raises:
        ValueError: If the URL is not recognized or lacks owner/repo
    """
    url = url.strip()
    match = SSH_PATTERN.match(url) or URL_PATTERN.match(url)
    if not match:
        raise ValueError(f"Invalid Git URL '{url}': must be SSH or HTTPS")

    parts = [p for p in match.group("path").split("/") if p]
    if len(parts) < 2:
        raise ValueError(f"Invalid Git URL '{url}': path must contain owner/repo")

    # nested groups keep everything but the last segment as the owner
    return "/".join(parts[:-1]), parts[-1]


class GitDiscovery:
    """Discovers repository layout and remotes with GitPython.

    The git.Repo object is opened lazily on first access.
    """

    def __init__(self, repo_path: str | Path = ".") -> None:
        self.repo_path = Path(repo_path).resolve()
        self._repo: git.Repo | None = None

    def _get_repo(self) -> git.Repo:
        if self._repo is None:
            try:
                self._repo = git.Repo(self.repo_path, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError) as e:
                raise NotGitRepositoryError(str(self.repo_path)) from e
        return self._repo

    @property
    def repo_root(self) -> Path:
        """Main working tree, even when called from inside a linked worktree.

        Raises:
            NotGitRepositoryError: If not within a git repository
        """
        repo = self._get_repo()
        common_dir = Path(repo.git.rev_parse("--git-common-dir"))
        if not common_dir.is_absolute():
            common_dir = Path(repo.working_tree_dir or self.repo_path) / common_dir
        common_dir = common_dir.resolve()
        if common_dir.name == ".git":
            return common_dir.parent
        return Path(repo.working_tree_dir or self.repo_path)

    def get_remote_url(self, remote_name: str = "origin") -> str:
        """URL of the named remote.

        Raises:
            GitOperationError: If the remote does not exist
        """
        repo = self._get_repo()
        for remote in repo.remotes:
            if remote.name == remote_name:
                return remote.url
        available = ", ".join(r.name for r in repo.remotes) or "none"
        raise GitOperationError(f"Remote '{remote_name}' not found. Available: {available}")

    def parse_repository(self, remote_name: str = "origin") -> RepositoryInfo:
        """Owner and repo name behind ``remote_name``.

        Raises:
            GitOperationError: If the remote is missing or its URL unparseable
        """
        url = self.get_remote_url(remote_name)
        try:
            owner, repo = parse_remote_url(url)
        except ValueError as e:
            raise GitOperationError(str(e)) from e
        return RepositoryInfo(owner=owner, repo=repo, remote_name=remote_name)
