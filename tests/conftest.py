"""Pytest configuration and shared fixtures."""

import json
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

import pytest
import structlog

from issue_pilot.config.settings import AgentConfig, PilotSettings
from issue_pilot.models.domain import Issue, Workspace
from issue_pilot.providers.base import IssueProvider

FAKE_AGENT = Path(__file__).parent / "fixtures" / "fake_agent.py"


class StreamLines:
    """Builders for stream-json output lines."""

    init = json.dumps({"type": "system", "subtype": "init", "session_id": "abc"})

    @staticmethod
    def assistant(text: str) -> str:
        """One assistant message carrying ``text``."""
        return json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": text}]}})

    @staticmethod
    def result(result: str = "", error: str = "") -> str:
        payload = {"type": "result", "result": result}
        if error:
            payload["error"] = error
        return json.dumps(payload)


class FakeProvider(IssueProvider):
    """In-memory issue tracker; publishing still commits and pushes for real."""

    def __init__(self, issues: list[Issue]):
        self.issues = issues
        self.opened: list[tuple[Workspace, str, str]] = []

    async def list_open_issues(self, limit: int = 50) -> list[Issue]:
        return self.issues[:limit]

    async def open_pull_request(self, workspace: Workspace, title: str, body: str) -> str:
        self.opened.append((workspace, title, body))
        return f"https://github.com/acme/widgets/pull/{workspace.issue_number}"


def git(cwd: Path, *args: str) -> str:
    """Run git synchronously in ``cwd`` and return stdout."""
    result = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    return result.stdout


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by a test (the CLI configures it per invocation)."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def stream_lines() -> type[StreamLines]:
    """Builders for fake agent output."""
    return StreamLines


@pytest.fixture
def run_git() -> Callable[..., str]:
    """Synchronous git helper for arranging repository state."""
    return git


@pytest.fixture
def sample_issue() -> Issue:
    """Sample issue for testing."""
    return Issue(number=42, title="fix bug", body="NPE on null input", url="https://github.com/o/r/issues/42")


@pytest.fixture
def fake_provider(sample_issue: Issue) -> FakeProvider:
    return FakeProvider([sample_issue, Issue(number=7, title="update docs", body="typo in README")])


@pytest.fixture
def settings() -> PilotSettings:
    """Default settings."""
    return PilotSettings()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Repository with one commit on ``main`` and a bare ``origin`` to push to."""
    origin = tmp_path / "origin.git"
    repo = tmp_path / "repo"
    repo.mkdir()

    subprocess.run(["git", "init", "--bare", "-q", str(origin)], check=True)
    git(repo, "init", "-q", "-b", "main")
    git(repo, "config", "user.email", "pilot@example.com")
    git(repo, "config", "user.name", "Pilot Tests")
    (repo / "README.md").write_text("# demo\n")
    git(repo, "add", "README.md")
    git(repo, "commit", "-q", "-m", "initial")
    git(repo, "remote", "add", "origin", str(origin))
    return repo


@pytest.fixture
def fake_agent(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., AgentConfig]:
    """Configure the fake agent CLI and return an AgentConfig that runs it.

    Call with the stdout lines to replay, plus optional ``exit_code``,
    ``stderr``, ``implement_lines``, ``write_file`` and ``delay``.
    """

    def configure(
        lines: list[str],
        exit_code: int = 0,
        stderr: str = "",
        implement_lines: list[str] | None = None,
        write_file: str | None = None,
        delay: float = 0.0,
    ) -> AgentConfig:
        output = tmp_path / "agent-output.jsonl"
        output.write_text("".join(line + "\n" for line in lines))
        monkeypatch.setenv("FAKE_AGENT_OUTPUT", str(output))
        monkeypatch.setenv("FAKE_AGENT_EXIT", str(exit_code))
        monkeypatch.setenv("FAKE_AGENT_RECORD", str(tmp_path / "agent-calls.jsonl"))
        if stderr:
            monkeypatch.setenv("FAKE_AGENT_STDERR", stderr)
        if implement_lines is not None:
            implement = tmp_path / "agent-implement.jsonl"
            implement.write_text("".join(line + "\n" for line in implement_lines))
            monkeypatch.setenv("FAKE_AGENT_IMPLEMENT_OUTPUT", str(implement))
        if write_file:
            monkeypatch.setenv("FAKE_AGENT_WRITE", write_file)
        if delay:
            monkeypatch.setenv("FAKE_AGENT_DELAY", str(delay))
        return AgentConfig(command=[sys.executable, str(FAKE_AGENT)])

    return configure


@pytest.fixture
def agent_calls(tmp_path: Path) -> Callable[[], list[dict]]:
    """Invocations recorded by the fake agent, in order."""

    def read() -> list[dict]:
        record = tmp_path / "agent-calls.jsonl"
        if not record.exists():
            return []
        return [json.loads(line) for line in record.read_text().splitlines() if line]

    return read
