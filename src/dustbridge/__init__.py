"""Dust conversational-agent provider for chat-completion hosts.

The package converts a system prompt and message history into Dust
conversation posts, decodes the streamed ``data:`` events back into text and
usage events, and implements the pseudo-XML tool call protocol the Dust agent
is instructed to answer with.
"""

from __future__ import annotations

from .config import DustSettings, validate_api_configuration
from .core import (
    AdapterError,
    ConfigurationError,
    DustModelInfo,
    Message,
    MessageRole,
    ProtocolMismatchError,
    ToolCall,
    TransportError,
)
from .core.adapters import DustAdapter, StreamMode, TextEvent, UsageEvent

__all__ = [
    "AdapterError",
    "ConfigurationError",
    "DustAdapter",
    "DustModelInfo",
    "DustSettings",
    "Message",
    "MessageRole",
    "ProtocolMismatchError",
    "StreamMode",
    "TextEvent",
    "ToolCall",
    "TransportError",
    "UsageEvent",
    "validate_api_configuration",
]

__version__ = "0.1.0"
