"""Session engine: state machine, approval gates, runner and orchestrator."""

from issue_pilot.engine.gate import ApprovalGate
from issue_pilot.engine.orchestrator import SessionOrchestrator
from issue_pilot.engine.session import SessionRunner
from issue_pilot.engine.state_machine import apply_event, can_transition, transition

__all__ = [
    "ApprovalGate",
    "SessionOrchestrator",
    "SessionRunner",
    "apply_event",
    "can_transition",
    "transition",
]
