"""Issue tracker providers."""

from issue_pilot.providers.base import IssueProvider
from issue_pilot.providers.factory import create_provider
from issue_pilot.providers.github_cli import GitHubCliProvider
from issue_pilot.providers.github_rest import GitHubRestProvider

__all__ = [
    "GitHubCliProvider",
    "GitHubRestProvider",
    "IssueProvider",
    "create_provider",
]
