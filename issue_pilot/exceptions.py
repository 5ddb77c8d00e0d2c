"""Custom exception hierarchy for issue-pilot.

Every failure the engine can report derives from IssuePilotError so callers
can catch the whole family with a single except clause, and so a session can
turn any of them into one human-readable terminal event.

Exception Hierarchy:
    IssuePilotError (base)
    ├── ConfigurationError
    ├── GitOperationError
    │   ├── NotGitRepositoryError
    │   └── WorkspaceError
    ├── AgentError
    │   ├── AgentStartError
    │   ├── AgentResultError
    │   └── AgentExitError
    ├── WorkflowError
    │   ├── InvalidTransitionError
    │   └── SessionConflictError
    └── ExternalServiceError
        ├── IssueSourceError
        └── PublishError

Example Usage:
    >>> from issue_pilot.exceptions import ConfigurationError
    >>> try:
    ...     load_config(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Config file not found: {path}") from e
"""


class IssuePilotError(Exception):
    """Base exception for all issue-pilot errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(IssuePilotError):
    """Configuration file is missing, unreadable, or fails validation."""

    pass


class GitOperationError(IssuePilotError):
    """A git command failed or the repository is in an unusable state.

    Attributes:
        message: Human-readable error description
        output: Combined git output, when available
    """

    def __init__(self, message: str, output: str | None = None) -> None:
        self.output = output
        full_message = message
        if output:
            full_message = f"{message}\n{output}"
        super().__init__(full_message)
        self.message = message


class NotGitRepositoryError(GitOperationError):
    """The given path is not inside a git working tree."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class WorkspaceError(GitOperationError):
    """An isolated workspace could not be created."""

    pass


# =============================================================================
# Agent Errors
# =============================================================================


class AgentError(IssuePilotError):
    """Base exception for agent subprocess failures.

    Attributes:
        message: Human-readable error description
        phase: Phase being run when the failure happened ("planning",
            "implementation"), if known
    """

    def __init__(self, message: str, phase: str | None = None) -> None:
        self.phase = phase
        super().__init__(message)


class AgentStartError(AgentError):
    """The agent binary could not be launched."""

    pass


class AgentResultError(AgentError):
    """The agent reported an explicit error result.

    The message is the agent's error text, unmodified.
    """

    pass


class AgentExitError(AgentError):
    """The agent exited with a non-zero status without reporting an error.

    Attributes:
        returncode: Process exit status
        stderr: Tail of the agent's standard error, if any
    """

    def __init__(
        self,
        returncode: int,
        stderr: str | None = None,
        phase: str | None = None,
    ) -> None:
        self.returncode = returncode
        self.stderr = stderr
        message = f"agent exited with status {returncode}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message, phase=phase)


# =============================================================================
# Workflow Errors
# =============================================================================


class WorkflowError(IssuePilotError):
    """Session orchestration errors."""

    pass


class InvalidTransitionError(WorkflowError):
    """A session was asked to move along an edge the state machine lacks."""

    def __init__(self, issue_number: int, current: str, target: str) -> None:
        self.issue_number = issue_number
        self.current = current
        self.target = target
        super().__init__(f"Session #{issue_number}: cannot move from {current} to {target}")


class SessionConflictError(WorkflowError):
    """A session for this issue is already running."""

    def __init__(self, issue_number: int) -> None:
        self.issue_number = issue_number
        super().__init__(f"Issue #{issue_number} already has an active session")


# =============================================================================
# External Service Errors
# =============================================================================


class ExternalServiceError(IssuePilotError):
    """Communication with the issue tracker or remote failed.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code, if the failure came from an API call
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"
        super().__init__(full_message)
        self.message = message


class IssueSourceError(ExternalServiceError):
    """Open issues could not be listed."""

    pass


class PublishError(ExternalServiceError):
    """The branch could not be pushed or the pull request could not be opened."""

    pass
