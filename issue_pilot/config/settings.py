"""
Configuration system using Pydantic for type-safe settings management.

Settings cover the agent command line, where workspaces live, which issue
tracker to talk to, and the engine's event buffer. Every section has
defaults, so issue-pilot runs without a config file inside any GitHub
checkout that has the ``gh`` CLI and the ``claude`` CLI on PATH.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from issue_pilot.exceptions import ConfigurationError

DEFAULT_IMPLEMENT_TOOLS = ["Edit", "Write", "Bash", "Glob", "Grep", "Read"]


class AgentConfig(BaseModel):
    """Agent CLI configuration."""

    command: list[str] = Field(
        default_factory=lambda: ["claude"],
        min_length=1,
        description="Agent executable and any leading arguments",
    )
    extra_args: list[str] = Field(default_factory=list, description="Arguments appended to every invocation")
    plan_allowed_tools: list[str] = Field(
        default_factory=list, description="Tool allow-list for the plan phase (empty means no restriction flag)"
    )
    implement_allowed_tools: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IMPLEMENT_TOOLS),
        description="Tool allow-list for the implementation phase",
    )


class WorkspaceConfig(BaseModel):
    """Where per-issue worktrees are created."""

    directory: str = Field(default=".worktrees", description="Worktree directory, relative to the repository root")
    branch_prefix: str = Field(default="issue-", min_length=1, description="Branch name prefix")


class IssuesConfig(BaseModel):
    """Issue tracker configuration.

    The ``github`` provider accepts a token reference such as
    ``token: "${GITHUB_TOKEN}"``. Owner and repo are discovered from the
    ``origin`` remote when left unset.
    """

    provider: Literal["gh-cli", "github"] = Field(default="gh-cli", description="Issue tracker client")
    limit: int = Field(default=50, ge=1, le=100, description="Maximum number of open issues to list")
    owner: str | None = Field(default=None, description="Repository owner (github provider)")
    repo: str | None = Field(default=None, description="Repository name (github provider)")
    token: SecretStr | None = Field(default=None, description="API token (github provider)")
    base_url: str = Field(default="https://api.github.com", description="API base URL (GitHub Enterprise)")
    base_branch: str | None = Field(
        default=None, description="Pull request base branch; the repository default when unset"
    )

    @model_validator(mode="after")
    def validate_provider_config(self) -> IssuesConfig:
        """The REST provider cannot authenticate without a token."""
        if self.provider == "github" and self.token is None:
            raise ValueError("token is required when provider='github'")
        return self


class EngineConfig(BaseModel):
    """Session engine tuning."""

    event_buffer: int = Field(
        default=64, ge=1, le=10000, description="Capacity of the shared event queue before producers wait"
    )


class PilotSettings(BaseSettings):
    """Main issue-pilot settings.

    Combines all configuration sections and provides loading from YAML files
    with environment variable interpolation. Individual values can also be
    overridden through ``ISSUE_PILOT_<SECTION>__<FIELD>`` variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="ISSUE_PILOT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    agent: AgentConfig = Field(default_factory=AgentConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    issues: IssuesConfig = Field(default_factory=IssuesConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> PilotSettings:
        """Load settings from ``config_path``, or defaults when it is None."""
        if config_path is None:
            return cls()
        return cls.from_yaml(config_path)

    @classmethod
    def from_yaml(cls, config_path: str) -> PilotSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            PilotSettings instance

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            yaml_content = config_file.read_text()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines are left unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
