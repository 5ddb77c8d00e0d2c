"""Agent CLI integration: output decoding, phase execution, prompts."""

from issue_pilot.agents.runner import AgentRunner, PhaseResult
from issue_pilot.agents.stream import ChunkKind, StreamChunk, StreamDecoder

__all__ = [
    "AgentRunner",
    "ChunkKind",
    "PhaseResult",
    "StreamChunk",
    "StreamDecoder",
]
