from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from dustbridge.core.adapters.dust import DEFAULT_TIMEOUT, DustAdapter, DustStreamIterator, StreamMode
from dustbridge.core.adapters.prompts import dust_system_prompt
from dustbridge.core.adapters.stream import StreamEvent, TextEvent, UsageEvent, replay_stream
from dustbridge.core.catalog import DUST_DEFAULT_MODEL_ID, DustModelInfo
from dustbridge.core.errors import ConfigurationError, ProtocolMismatchError, TransportError
from dustbridge.core.message import Message, MessageRole, TextBlock, ToolUseBlock
from tests.fixtures.dust_fake import (
    API_KEY,
    BASE_URL,
    WORKSPACE_ID,
    FakeDustServer,
    build_settings,
    message_event,
    request_json,
    usage_event,
)

SYSTEM_PROMPT = "You are a careful engineer."
API_ROOT = f"{BASE_URL}/api/v1/w/{WORKSPACE_ID}/assistant"


def _user(content: str) -> Message:
    return Message(role=MessageRole.USER, content=content)


def _collect(iterator: DustStreamIterator) -> list[StreamEvent]:
    return asyncio.run(replay_stream(iterator))


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"workspace_id": None}, "Dust workspace ID is required"),
        ({"workspace_id": ""}, "Dust workspace ID is required"),
        ({"api_key": None}, "Dust API key is required"),
        ({"api_key": None, "workspace_id": None}, "Dust workspace ID is required"),
    ],
)
def test_missing_credentials_fail_at_construction(overrides: dict[str, Any], message: str) -> None:
    server = FakeDustServer()

    with pytest.raises(ConfigurationError, match=message):
        DustAdapter(build_settings(**overrides), client=server.client())

    assert server.requests == []


def test_configuration_id_priority() -> None:
    assert DustAdapter(build_settings()).configuration_id == DUST_DEFAULT_MODEL_ID
    assert DustAdapter(build_settings(api_model_id="agent-m")).configuration_id == "agent-m"
    assert (
        DustAdapter(build_settings(api_model_id="agent-m", assistant_id="agent-a")).configuration_id == "agent-a"
    )


def test_default_base_url_and_trailing_slash_are_normalized() -> None:
    server = FakeDustServer(catalog=[])
    adapter = DustAdapter(build_settings(base_url=f"{BASE_URL}///"), client=server.client())

    asyncio.run(adapter.fetch_available_models())

    assert str(server.requests[0].url) == f"{API_ROOT}/agent_configurations"


def test_default_timeout_is_generous_for_streaming() -> None:
    assert DEFAULT_TIMEOUT.read == 300.0
    assert DEFAULT_TIMEOUT.connect == 30.0


def test_create_message_posts_conversation_then_each_message() -> None:
    server = FakeDustServer(
        event_bodies=[
            [message_event("Understood.")],
            [message_event("Hi there"), usage_event(7, 3)],
        ]
    )
    adapter = DustAdapter(build_settings(assistant_id="agent-42"), client=server.client(), mode=StreamMode.SIMPLE)

    events = _collect(adapter.create_message(SYSTEM_PROMPT, [_user("Hello")]))

    assert events == [
        TextEvent(text="Understood."),
        TextEvent(text="Hi there"),
        UsageEvent(input_tokens=7, output_tokens=3),
    ]

    routes = [(request.method, str(request.url)) for request in server.requests]
    assert routes == [
        ("POST", f"{API_ROOT}/conversations"),
        ("POST", f"{API_ROOT}/conversations/conv-1/messages"),
        ("GET", f"{API_ROOT}/conversations/conv-1/messages/msg-1/events"),
        ("POST", f"{API_ROOT}/conversations/conv-1/messages"),
        ("GET", f"{API_ROOT}/conversations/conv-1/messages/msg-2/events"),
    ]
    for request in server.requests:
        assert request.headers["Authorization"] == f"Bearer {API_KEY}"

    conversation = request_json(server.requests_for("create_conversation")[0])
    assert conversation == {
        "message": {"content": SYSTEM_PROMPT, "mentions": [{"configurationId": "agent-42"}]},
        "visibility": "unlisted",
        "blocking": True,
    }

    posts = [request_json(request) for request in server.requests_for("post_message")]
    assert posts == [
        {"content": dust_system_prompt(SYSTEM_PROMPT), "mentions": [{"configurationId": "agent-42"}]},
        {"content": "Hello", "mentions": [{"configurationId": "agent-42"}]},
    ]
    assert all(stream.closed for stream in server.streams)


def test_tool_aware_stream_yields_one_text_event_per_message() -> None:
    answer = "I'll list the files.\n\n<list_files>\n<path>src</path>\n</list_files>"
    server = FakeDustServer(
        event_bodies=[
            [message_event("Ready"), usage_event(100, 1)],
            [message_event("I'll list "), message_event("the files.<list_files><path>src</path></list_files>")],
        ]
    )
    adapter = DustAdapter(build_settings(), client=server.client())

    events = _collect(adapter.create_message(SYSTEM_PROMPT, [_user("What is in src?")]))

    assert events == [
        UsageEvent(input_tokens=100, output_tokens=1),
        TextEvent(text="Ready"),
        TextEvent(text=answer),
    ]


def test_assistant_history_is_posted_as_flattened_text() -> None:
    server = FakeDustServer(event_bodies=[[], [], []])
    adapter = DustAdapter(build_settings(), client=server.client())
    history = [
        _user("Run the tests"),
        Message(
            role=MessageRole.ASSISTANT,
            content=(
                TextBlock(text="Running them."),
                ToolUseBlock(id="t1", name="execute_command", input={"command": "pytest"}),
            ),
        ),
    ]

    events = _collect(adapter.create_message(SYSTEM_PROMPT, history))

    assert events == []
    contents = [request_json(request)["content"] for request in server.requests_for("post_message")]
    assert contents[1:] == [
        "Run the tests",
        "Running them.\n\n<execute_command>\n<command>pytest</command>\n</execute_command>",
    ]


def test_stream_is_an_alias_for_create_message(dust_settings) -> None:
    server = FakeDustServer(event_bodies=[[message_event("ok")]])
    adapter = DustAdapter(dust_settings, client=server.client())

    events = _collect(adapter.stream(SYSTEM_PROMPT, []))

    assert events == [TextEvent(text="ok")]


def test_no_request_is_made_until_iteration_starts() -> None:
    server = FakeDustServer(event_bodies=[[message_event("ok")]])
    adapter = DustAdapter(build_settings(), client=server.client())

    iterator = adapter.create_message(SYSTEM_PROMPT, [])
    asyncio.run(iterator.aclose())

    assert server.requests == []
    assert iterator.closed


@pytest.mark.parametrize(
    ("route", "message"),
    [
        ("create_conversation", "Failed to create conversation: 500"),
        ("post_message", "Failed to send message: 500"),
        ("events", "Failed to get message events: 500"),
    ],
)
def test_non_success_status_raises_transport_error(route: str, message: str) -> None:
    server = FakeDustServer(event_bodies=[[message_event("never")]], statuses={route: 500})
    adapter = DustAdapter(build_settings(), client=server.client())
    iterator = adapter.create_message(SYSTEM_PROMPT, [])

    with pytest.raises(TransportError, match=message) as excinfo:
        _collect(iterator)

    assert excinfo.value.status_code == 500
    assert iterator.closed


def test_failure_after_first_message_stops_remaining_posts() -> None:
    server = FakeDustServer(event_bodies=[[message_event("first")]], statuses={"events": 502})
    adapter = DustAdapter(build_settings(), client=server.client())

    with pytest.raises(TransportError, match="502"):
        _collect(adapter.create_message(SYSTEM_PROMPT, [_user("one"), _user("two")]))

    assert len(server.requests_for("post_message")) == 1


def test_connection_failure_is_wrapped() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    adapter = DustAdapter(build_settings(), client=client)

    with pytest.raises(TransportError, match="Dust request failed: connection refused"):
        _collect(adapter.create_message(SYSTEM_PROMPT, []))


def test_conversation_without_sid_is_a_protocol_mismatch() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"conversation": {}})

    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    adapter = DustAdapter(build_settings(), client=client)

    with pytest.raises(ProtocolMismatchError, match="conversation.sId"):
        _collect(adapter.create_message(SYSTEM_PROMPT, []))


def test_aclose_releases_open_event_stream() -> None:
    server = FakeDustServer(event_bodies=[[message_event("one"), message_event("two")]])
    adapter = DustAdapter(build_settings(), client=server.client(), mode=StreamMode.SIMPLE)
    iterator = adapter.create_message(SYSTEM_PROMPT, [])

    async def _first_then_close() -> StreamEvent:
        first = await anext(iterator)
        await iterator.aclose()
        return first

    first = asyncio.run(_first_then_close())

    assert first == TextEvent(text="one")
    assert iterator.closed
    assert server.streams[0].closed
    assert len(server.requests_for("post_message")) == 1


def test_aclose_during_pending_read_releases_event_stream() -> None:
    server = FakeDustServer(
        event_bodies=[[message_event("partial"), message_event("never delivered")]],
        block_after=1,
    )
    adapter = DustAdapter(build_settings(), client=server.client(), mode=StreamMode.SIMPLE)
    iterator = adapter.create_message(SYSTEM_PROMPT, [])

    async def _close_while_reading() -> StreamEvent:
        first = await anext(iterator)
        reader = asyncio.create_task(anext(iterator))
        for _ in range(10):
            await asyncio.sleep(0)
        assert not reader.done()

        await iterator.aclose()

        with pytest.raises(StopAsyncIteration):
            await reader
        return first

    first = asyncio.run(_close_while_reading())

    assert first == TextEvent(text="partial")
    assert iterator.closed
    assert server.streams[0].closed


def test_task_cancellation_releases_event_stream() -> None:
    server = FakeDustServer(
        event_bodies=[[message_event("partial"), message_event("never delivered")]],
        block_after=1,
    )
    adapter = DustAdapter(build_settings(), client=server.client(), mode=StreamMode.SIMPLE)
    iterator = adapter.create_message(SYSTEM_PROMPT, [])
    received: list[StreamEvent] = []

    async def _consume(started: asyncio.Event) -> None:
        async for event in iterator:
            received.append(event)
            started.set()

    async def _run() -> None:
        started = asyncio.Event()
        task = asyncio.create_task(_consume(started))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(_run())

    assert received == [TextEvent(text="partial")]
    assert iterator.closed
    assert server.streams[0].closed


def test_get_model_uses_available_models() -> None:
    info = DustModelInfo(agent_id="agent-x", agent_name="Researcher", model_id="gpt-4o")
    adapter = DustAdapter(build_settings(api_model_id="agent-x", available_models={"agent-x": info}))

    resolved = adapter.get_model()

    assert resolved.id == "agent-x"
    assert resolved.info == info


def test_get_model_falls_back_to_default() -> None:
    adapter = DustAdapter(build_settings(api_model_id="unknown", available_models={}))

    resolved = adapter.get_model()

    assert resolved.id == DUST_DEFAULT_MODEL_ID
    assert resolved.info.agent_name == "Dust"
