"""State primitives tracked while streaming model responses."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

from dustbridge.core.adapters.stream import TextEvent, UsageEvent


@dataclass(slots=True)
class AgentState:
    """Aggregated runtime state for a single request."""

    memory: list[str] = field(default_factory=list)
    texts: list[TextEvent] = field(default_factory=list)
    usage: list[UsageEvent] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def output(self) -> str:
        """Concatenated narrative text received so far."""

        return "".join(event.text for event in self.texts)

    def snapshot(self) -> AgentState:
        """Return an independent copy of the current runtime state."""

        return AgentState(
            memory=list(self.memory),
            texts=list(self.texts),
            usage=list(self.usage),
            metadata=deepcopy(self.metadata),
        )
