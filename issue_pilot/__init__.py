"""issue-pilot: drive GitHub issues through plan, approval and pull request with an AI agent."""

__version__ = "0.1.0"
