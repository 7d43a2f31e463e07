"""Message schema shared between the host and the Dust adapter."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Union

from .errors import AdapterError


class MessageRole(str, Enum):
    """Role names understood by the host application."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class TextBlock:
    """Plain narrative text."""

    text: str

    def __post_init__(self) -> None:
        if not isinstance(self.text, str):
            msg = "text block content must be a string"
            raise TypeError(msg)


@dataclass(frozen=True, slots=True)
class ImageBlock:
    """Inline image payload."""

    data: str
    media_type: str
    encoding: str = "base64"


@dataclass(frozen=True, slots=True)
class ToolUseBlock:
    """A tool invocation previously emitted by the assistant."""

    id: str
    name: str
    input: Mapping[str, str]

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            msg = "tool use name must be a non-empty string"
            raise ValueError(msg)
        object.__setattr__(self, "input", _freeze_string_mapping(self.input, path="ToolUseBlock.input"))


ContentBlock = Union[TextBlock, ImageBlock, ToolUseBlock]


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation recovered from model output."""

    id: str
    name: str
    input: Mapping[str, str]

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            msg = "tool call id must be a non-empty string"
            raise ValueError(msg)
        if not isinstance(self.name, str) or not self.name:
            msg = "tool call name must be a non-empty string"
            raise ValueError(msg)
        object.__setattr__(self, "input", _freeze_string_mapping(self.input, path="ToolCall.input"))


@dataclass(frozen=True, slots=True)
class Message:
    """A single message of the host conversation history."""

    role: MessageRole
    content: str | tuple[ContentBlock, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.role, MessageRole):
            object.__setattr__(self, "role", MessageRole(self.role))
        object.__setattr__(self, "content", _normalize_content(self.content))


@dataclass(frozen=True, slots=True)
class WireMessage:
    """Message in the shape posted to a Dust conversation."""

    role: str
    content: str | tuple[ContentBlock, ...]

    def to_payload_content(self) -> str | list[dict[str, Any]]:
        """Return the content as JSON-ready data."""

        if isinstance(self.content, str):
            return self.content
        return [block_to_payload(block) for block in self.content]


def block_to_payload(block: ContentBlock) -> dict[str, Any]:
    """Convert a content block into its JSON representation."""

    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ImageBlock):
        return {
            "type": "image",
            "source": {"type": block.encoding, "media_type": block.media_type, "data": block.data},
        }
    if isinstance(block, ToolUseBlock):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": dict(block.input)}
    msg = f"unsupported content block {type(block).__name__}"
    raise AdapterError(msg)


def messages_from_payload(payload: Sequence[Mapping[str, Any] | Any]) -> list[Message]:
    """Normalize host JSON messages into :class:`Message` instances."""

    normalized: list[Message] = []
    for index, item in enumerate(payload):
        mapping = _coerce_mapping(item, path=f"messages[{index}]")

        raw_role = mapping.get("role")
        if not isinstance(raw_role, str):
            msg = f"messages[{index}].role must be a string"
            raise AdapterError(msg)
        try:
            role = MessageRole(raw_role.strip().lower())
        except ValueError as exc:
            msg = f"unsupported role '{raw_role}'"
            raise AdapterError(msg) from exc

        raw_content = mapping.get("content", "")
        if raw_content is None:
            content: str | tuple[ContentBlock, ...] = ""
        elif isinstance(raw_content, str):
            content = raw_content
        elif isinstance(raw_content, Sequence) and not isinstance(raw_content, (bytes, bytearray)):
            content = tuple(
                _block_from_payload(block, path=f"messages[{index}].content[{position}]")
                for position, block in enumerate(raw_content)
            )
        else:
            msg = f"messages[{index}].content must be a string or a list of blocks"
            raise AdapterError(msg)

        normalized.append(Message(role=role, content=content))

    return normalized


def _block_from_payload(value: Any, *, path: str) -> ContentBlock:
    mapping = _coerce_mapping(value, path=path)
    block_type = mapping.get("type")

    if block_type == "text":
        text = mapping.get("text")
        if not isinstance(text, str):
            msg = f"{path}.text must be a string"
            raise AdapterError(msg)
        return TextBlock(text=text)

    if block_type == "image":
        source = _coerce_mapping(mapping.get("source", {}), path=f"{path}.source")
        data = source.get("data")
        media_type = source.get("media_type")
        if not isinstance(data, str) or not isinstance(media_type, str):
            msg = f"{path}.source must include string 'data' and 'media_type'"
            raise AdapterError(msg)
        return ImageBlock(data=data, media_type=media_type, encoding=str(source.get("type", "base64")))

    if block_type == "tool_use":
        call_id = mapping.get("id")
        name = mapping.get("name")
        raw_input = mapping.get("input", {})
        if not isinstance(call_id, str) or not isinstance(name, str) or not name:
            msg = f"{path} must include string 'id' and 'name'"
            raise AdapterError(msg)
        try:
            return ToolUseBlock(id=call_id, name=name, input=raw_input)
        except (TypeError, ValueError) as exc:
            msg = f"{path}.input must map parameter names to strings"
            raise AdapterError(msg) from exc

    msg = f"{path} has unsupported block type {block_type!r}"
    raise AdapterError(msg)


def _normalize_content(content: Any) -> str | tuple[ContentBlock, ...]:
    if isinstance(content, str):
        return content
    if not isinstance(content, Sequence) or isinstance(content, (bytes, bytearray)):
        msg = "message content must be a string or a sequence of content blocks"
        raise TypeError(msg)
    blocks = tuple(content)
    for block in blocks:
        if not isinstance(block, (TextBlock, ImageBlock, ToolUseBlock)):
            msg = "message content blocks must be TextBlock, ImageBlock or ToolUseBlock"
            raise TypeError(msg)
    return blocks


def _freeze_string_mapping(value: Any, *, path: str) -> Mapping[str, str]:
    if not isinstance(value, Mapping):
        msg = f"{path} must be a mapping"
        raise TypeError(msg)
    for key, inner in value.items():
        if not isinstance(key, str) or not key:
            msg = f"{path} keys must be non-empty strings"
            raise TypeError(msg)
        if not isinstance(inner, str):
            msg = f"{path}.{key} must be a string"
            raise TypeError(msg)
    return MappingProxyType(dict(value))


def _coerce_mapping(item: Mapping[str, Any] | Any, *, path: str) -> Mapping[str, Any]:
    if isinstance(item, Mapping):
        return item

    if hasattr(item, "model_dump"):
        dump = getattr(item, "model_dump")
        result = dump()
        if isinstance(result, Mapping):
            return result

    msg = f"{path} must be a mapping"
    raise AdapterError(msg)
