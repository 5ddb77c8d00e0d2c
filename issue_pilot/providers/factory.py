"""Select the issue provider named in the settings."""

from pathlib import Path

import structlog

from issue_pilot.config.settings import PilotSettings
from issue_pilot.exceptions import ConfigurationError, GitOperationError
from issue_pilot.git.discovery import GitDiscovery
from issue_pilot.providers.base import IssueProvider
from issue_pilot.providers.github_cli import GitHubCliProvider
from issue_pilot.providers.github_rest import GitHubRestProvider

log = structlog.get_logger(__name__)


def create_provider(settings: PilotSettings, repo_root: Path) -> IssueProvider:
    """Build the configured provider.

    For the ``github`` provider, owner and repo fall back to the ``origin``
    remote of ``repo_root`` when not configured.

    Raises:
        ConfigurationError: If the REST provider has no token or cannot
            determine its repository
    """
    issues = settings.issues

    if issues.provider == "gh-cli":
        return GitHubCliProvider(repo_root)

    if issues.token is None:
        raise ConfigurationError("issues.token is required for the github provider")

    owner, repo = issues.owner, issues.repo
    if not (owner and repo):
        try:
            info = GitDiscovery(repo_root).parse_repository()
        except GitOperationError as e:
            raise ConfigurationError(f"issues.owner/issues.repo not set and origin not usable: {e.message}") from e
        owner, repo = owner or info.owner, repo or info.repo
        log.debug("repository_discovered", owner=owner, repo=repo)

    return GitHubRestProvider(
        token=issues.token.get_secret_value(),
        owner=owner,
        repo=repo,
        base_url=issues.base_url,
        base_branch=issues.base_branch,
    )
