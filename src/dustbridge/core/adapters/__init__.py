"""Adapter interfaces and the Dust provider implementation."""

from __future__ import annotations

from .base import ModelAdapter
from .dust import DustAdapter, DustEventNormalizer, DustStreamIterator, StreamMode
from .stream import (
    BaseStreamIterator,
    StreamEvent,
    TextEvent,
    UsageEvent,
)
from .toolbridge import ParsedResponse, format_tool_call, parse_response
from .utils import messages_to_dust

__all__ = [
    "ModelAdapter",
    "DustAdapter",
    "DustEventNormalizer",
    "DustStreamIterator",
    "StreamMode",
    "BaseStreamIterator",
    "TextEvent",
    "UsageEvent",
    "StreamEvent",
    "ParsedResponse",
    "format_tool_call",
    "parse_response",
    "messages_to_dust",
]
