"""Tests for issue_pilot/providers/factory.py."""

from unittest.mock import patch

import pytest

from issue_pilot.config.settings import IssuesConfig, PilotSettings
from issue_pilot.exceptions import ConfigurationError, GitOperationError
from issue_pilot.git.discovery import RepositoryInfo
from issue_pilot.providers.factory import create_provider
from issue_pilot.providers.github_cli import GitHubCliProvider
from issue_pilot.providers.github_rest import GitHubRestProvider


def test_default_is_gh_cli(tmp_path):
    provider = create_provider(PilotSettings(), tmp_path)

    assert isinstance(provider, GitHubCliProvider)
    assert provider.repo_root == tmp_path


def test_rest_provider_with_configured_repository(tmp_path):
    settings = PilotSettings(
        issues={"provider": "github", "token": "ghp_x", "owner": "acme", "repo": "widgets", "base_branch": "dev"}
    )

    provider = create_provider(settings, tmp_path)

    assert isinstance(provider, GitHubRestProvider)
    assert (provider.owner, provider.repo, provider.token) == ("acme", "widgets", "ghp_x")
    assert provider.base_branch == "dev"


@patch("issue_pilot.providers.factory.GitDiscovery")
def test_rest_provider_discovers_repository(mock_discovery, tmp_path):
    mock_discovery.return_value.parse_repository.return_value = RepositoryInfo("acme", "widgets", "origin")
    settings = PilotSettings(issues={"provider": "github", "token": "ghp_x"})

    provider = create_provider(settings, tmp_path)

    assert (provider.owner, provider.repo) == ("acme", "widgets")
    mock_discovery.assert_called_once_with(tmp_path)


@patch("issue_pilot.providers.factory.GitDiscovery")
def test_rest_provider_without_usable_origin(mock_discovery, tmp_path):
    mock_discovery.return_value.parse_repository.side_effect = GitOperationError("Remote 'origin' not found")
    settings = PilotSettings(issues={"provider": "github", "token": "ghp_x"})

    with pytest.raises(ConfigurationError, match="origin"):
        create_provider(settings, tmp_path)


def test_rest_provider_without_token(tmp_path):
    settings = PilotSettings()
    # bypasses the model validator, as settings assembled in code can
    settings.issues = IssuesConfig.model_construct(provider="github", owner="acme", repo="widgets")

    with pytest.raises(ConfigurationError, match="issues.token is required"):
        create_provider(settings, tmp_path)
