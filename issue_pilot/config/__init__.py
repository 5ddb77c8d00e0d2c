"""Configuration loading for issue-pilot."""

from issue_pilot.config.settings import (
    AgentConfig,
    EngineConfig,
    IssuesConfig,
    PilotSettings,
    WorkspaceConfig,
)

__all__ = [
    "AgentConfig",
    "EngineConfig",
    "IssuesConfig",
    "PilotSettings",
    "WorkspaceConfig",
]
