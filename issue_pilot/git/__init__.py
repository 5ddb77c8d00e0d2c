"""Git integration: repository discovery and per-issue worktrees."""

from issue_pilot.git.discovery import GitDiscovery, RepositoryInfo, parse_remote_url
from issue_pilot.git.workspace import WorkspaceManager

__all__ = [
    "GitDiscovery",
    "RepositoryInfo",
    "WorkspaceManager",
    "parse_remote_url",
]
