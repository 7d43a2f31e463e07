"""Async runtime loop coordinating streaming adapters and request state."""

from .loop import AgentRuntime, SessionTranscript
from .state import AgentState

__all__ = [
    "AgentRuntime",
    "SessionTranscript",
    "AgentState",
]
