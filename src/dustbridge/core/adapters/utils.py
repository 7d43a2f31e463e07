"""Pure conversion helpers between host messages and Dust conversation posts."""

from __future__ import annotations

from collections.abc import Sequence

from ..message import Message, MessageRole, TextBlock, ToolUseBlock, WireMessage
from .prompts import dust_system_prompt
from .toolbridge import format_tool_call


def messages_to_dust(messages: Sequence[Message], system_prompt: str) -> list[WireMessage]:
    """Convert host messages into the sequence of posts for one conversation.

    The first post is always a ``user`` message carrying the wrapped system
    prompt. Tool results become ``user`` messages and assistant tool uses are
    flattened into the pseudo-XML text form.
    """

    converted = [WireMessage(role=MessageRole.USER.value, content=dust_system_prompt(system_prompt))]
    for message in messages:
        converted.append(_convert_message(message))
    return converted


def flatten_assistant_content(blocks: Sequence[object]) -> str:
    """Render assistant text blocks and tool uses as a single string."""

    text_content = "\n".join(block.text for block in blocks if isinstance(block, TextBlock))
    tool_calls = "\n".join(
        format_tool_call(block.name, block.input) for block in blocks if isinstance(block, ToolUseBlock)
    )
    return f"{text_content}\n\n{tool_calls}".strip()


def _convert_message(message: Message) -> WireMessage:
    role = _role_value(message.role)
    content = message.content

    if role == MessageRole.ASSISTANT.value and isinstance(content, tuple):
        return WireMessage(role=role, content=flatten_assistant_content(content))

    if role == MessageRole.TOOL.value and isinstance(content, str):
        return WireMessage(role=MessageRole.USER.value, content=content)

    return WireMessage(role=role, content=content)


def _role_value(role: MessageRole | str) -> str:
    if isinstance(role, MessageRole):
        return role.value
    return str(role)
