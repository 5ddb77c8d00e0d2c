"""Prompt templates for the plan and implementation phases."""

from issue_pilot.models.domain import Issue

PLAN_COMPLETE_MARKER = "PLAN COMPLETE"


def build_plan_prompt(issue: Issue) -> str:
    """Ask for a plan only; the agent must not touch any files yet."""
    return (
        f"You are working on the following GitHub issue:\n\n"
        f"Title: {issue.title}\n\n"
        f"{issue.body}\n\n"
        f"Create a concise implementation plan. List the files you will change, "
        f"your approach, and any edge cases. Do NOT write any code yet. "
        f"End your response with the exact line: {PLAN_COMPLETE_MARKER}"
    )


def build_implementation_prompt(issue: Issue, plan: str) -> str:
    """Ask the agent to carry out the approved plan in its workspace."""
    return (
        f"Implement the following approved plan for GitHub issue #{issue.number}.\n\n"
        f"ISSUE TITLE: {issue.title}\n\n"
        f"ISSUE BODY:\n{issue.body}\n\n"
        f"APPROVED PLAN:\n{plan}\n\n"
        f"Write the code. After implementation, run the project's tests if a "
        f"test command is available. Do NOT create a pull request."
    )
