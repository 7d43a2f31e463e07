"""Core data structures, errors and the agent catalog."""

from __future__ import annotations

from .catalog import DUST_DEFAULT_MODEL_ID, DustModelInfo, ResolvedModel, get_model
from .errors import (
    AdapterError,
    ConfigurationError,
    DecodeError,
    ProtocolMismatchError,
    TransportError,
)
from .message import (
    ContentBlock,
    ImageBlock,
    Message,
    MessageRole,
    TextBlock,
    ToolCall,
    ToolUseBlock,
    WireMessage,
    messages_from_payload,
)

__all__ = [
    "AdapterError",
    "ConfigurationError",
    "ContentBlock",
    "DUST_DEFAULT_MODEL_ID",
    "DecodeError",
    "DustModelInfo",
    "ImageBlock",
    "Message",
    "MessageRole",
    "ProtocolMismatchError",
    "ResolvedModel",
    "TextBlock",
    "ToolCall",
    "ToolUseBlock",
    "TransportError",
    "WireMessage",
    "get_model",
    "messages_from_payload",
]
