"""Pseudo-XML tool call protocol embedded in Dust model output.

Tool calls travel inside ordinary text as::

    <tool_name>
    <param>value</param>
    </tool_name>

Parsing happens in two stages. :func:`extract_tag_pairs` is a generic
balanced-tag extractor that knows nothing about tools, and
:func:`validate_tool_input` checks each candidate against
:data:`REQUIRED_TOOL_FIELDS`. Candidates that fail validation are dropped.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from ..message import ToolCall

LOGGER = logging.getLogger(__name__)

REQUIRED_TOOL_FIELDS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "execute_command": frozenset({"command"}),
        "list_files": frozenset({"path"}),
        "list_code_definition_names": frozenset({"path"}),
        "search_files": frozenset({"path", "regex"}),
        "read_file": frozenset({"path"}),
        "write_to_file": frozenset({"path", "content"}),
        "ask_followup_question": frozenset({"question"}),
        "attempt_completion": frozenset({"result"}),
    }
)

TOOL_NAMES: tuple[str, ...] = tuple(REQUIRED_TOOL_FIELDS)

_TAG_PAIR_PATTERN = re.compile(r"<(\w+)>(.*?)</\1>", re.DOTALL)


@dataclass(frozen=True, slots=True)
class ParsedResponse:
    """Narrative text separated from the tool calls that follow it."""

    normal_text: str
    tool_calls: tuple[ToolCall, ...]


def format_tool_call(tool_name: str, tool_input: Mapping[str, str]) -> str:
    """Encode a tool invocation in the pseudo-XML text form.

    Values are written verbatim. A value containing its own closing tag will
    not survive a round trip through :func:`parse_response`.
    """

    params = "\n".join(f"<{key}>{value}</{key}>" for key, value in tool_input.items())
    return f"<{tool_name}>\n{params}\n</{tool_name}>"


def extract_tag_pairs(text: str) -> list[tuple[str, str]]:
    """Return every non-overlapping ``<name>content</name>`` pair in order."""

    return [(match.group(1), match.group(2)) for match in _TAG_PAIR_PATTERN.finditer(text)]


def parse_tool_input(content: str) -> dict[str, str]:
    """Extract ``<param>value</param>`` pairs from a tool call body.

    Only one level is scanned. Values are stripped and the last occurrence of
    a duplicated parameter wins.
    """

    return {name: value.strip() for name, value in extract_tag_pairs(content)}


def validate_tool_input(tool_name: str, tool_input: Mapping[str, str]) -> bool:
    """Whether ``tool_name`` is known and every required field is present."""

    required = REQUIRED_TOOL_FIELDS.get(tool_name)
    if required is None:
        return False
    return required.issubset(tool_input)


def find_first_tool_tag(text: str, tool_names: Iterable[str] = TOOL_NAMES) -> int | None:
    """Return the offset of the first opening tag of a known tool."""

    names = "|".join(re.escape(name) for name in tool_names)
    if not names:
        return None
    match = re.search(f"<({names})>", text, re.IGNORECASE)
    if match is None:
        return None
    return match.start()


def parse_tool_calls(text: str) -> tuple[ToolCall, ...]:
    """Parse and validate every tool call found in ``text``."""

    stamp = int(time.time() * 1000)
    tool_calls: list[ToolCall] = []
    for tool_name, content in extract_tag_pairs(text):
        tool_input = parse_tool_input(content)
        if not validate_tool_input(tool_name, tool_input):
            LOGGER.warning("dropping invalid tool call name=%s params=%s", tool_name, sorted(tool_input))
            continue
        call_id = f"call_{len(tool_calls)}_{stamp}"
        tool_calls.append(ToolCall(id=call_id, name=tool_name, input=tool_input))
    return tuple(tool_calls)


def parse_response(response: str) -> ParsedResponse:
    """Split model output into narrative text and trailing tool calls."""

    start = find_first_tool_tag(response)
    if start is None:
        return ParsedResponse(normal_text=response.strip(), tool_calls=())

    normal_text = response[:start].strip()
    return ParsedResponse(normal_text=normal_text, tool_calls=parse_tool_calls(response[start:]))


def render_parsed_response(parsed: ParsedResponse) -> str:
    """Re-encode a parsed response with canonical tool call formatting."""

    calls = "\n\n".join(format_tool_call(call.name, call.input) for call in parsed.tool_calls)
    return f"{parsed.normal_text}\n\n{calls}".strip()
