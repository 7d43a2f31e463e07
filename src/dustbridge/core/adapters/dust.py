"""Dust assistant provider adapter with streaming event decoding."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

from ..catalog import DUST_DEFAULT_MODEL_ID, DustModelInfo, ResolvedModel, get_model, models_from_catalog
from ..errors import ConfigurationError, DecodeError, ProtocolMismatchError, TransportError
from ..message import Message, WireMessage
from .base import ModelAdapter
from .sse import SSELineBuffer, decode_event_line
from .stream import BaseStreamIterator, StreamEvent, StreamNormalizer, TextEvent, UsageEvent
from .toolbridge import parse_response, render_parsed_response
from .utils import messages_to_dust

if TYPE_CHECKING:
    from ...config import DustSettings

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=30.0)


class StreamMode(str, Enum):
    """How ``message`` events are surfaced to the consumer."""

    SIMPLE = "simple"
    """Emit every content fragment as soon as it arrives."""

    TOOL_AWARE = "tool_aware"
    """Buffer content and emit one normalized text event per message stream."""


class DustAdapter(ModelAdapter):
    """Translate host conversations into Dust assistant API calls."""

    def __init__(
        self,
        settings: DustSettings,
        *,
        client: httpx.AsyncClient | None = None,
        mode: StreamMode = StreamMode.TOOL_AWARE,
        timeout: httpx.Timeout | float | None = DEFAULT_TIMEOUT,
    ) -> None:
        if not settings.workspace_id:
            msg = "Dust workspace ID is required"
            raise ConfigurationError(msg)
        if not settings.api_key:
            msg = "Dust API key is required"
            raise ConfigurationError(msg)

        self._settings = settings
        self._client = client
        self._mode = StreamMode(mode)
        self._timeout = timeout
        self._api_root = f"{settings.resolved_base_url}/api/v1/w/{settings.workspace_id}/assistant"

    @property
    def settings(self) -> DustSettings:
        return self._settings

    @property
    def configuration_id(self) -> str:
        """Agent configuration addressed by every posted message."""

        return self._settings.assistant_id or self._settings.api_model_id or DUST_DEFAULT_MODEL_ID

    def create_message(self, system_prompt: str, messages: Sequence[Message], /) -> DustStreamIterator:
        wire_messages = messages_to_dust(messages, system_prompt)
        chunks = self._request_chunks(system_prompt, wire_messages)
        return DustStreamIterator(chunks, normalizer=DustEventNormalizer(mode=self._mode))

    def stream(self, system_prompt: str, messages: Sequence[Message], /) -> DustStreamIterator:
        return self.create_message(system_prompt, messages)

    def get_model(self) -> ResolvedModel:
        return get_model(self._settings.api_model_id, self._settings.available_models)

    async def fetch_available_models(self) -> dict[str, DustModelInfo]:
        """Fetch the workspace agent catalog keyed by agent id."""

        async with self._client_scope() as client:
            try:
                response = await client.get(f"{self._api_root}/agent_configurations", headers=self._headers())
            except httpx.HTTPError as exc:
                msg = "Failed to fetch models"
                raise TransportError(msg) from exc
            _raise_for_status(response, "Failed to fetch models")
            payload = _json_body(response, "agent configuration")

        models = models_from_catalog(payload)
        LOGGER.info("fetched %s agent configurations", len(models))
        return models

    async def _request_chunks(
        self,
        system_prompt: str,
        wire_messages: Sequence[WireMessage],
    ) -> AsyncGenerator[dict[str, Any], None]:
        async with self._client_scope() as client:
            try:
                conversation_id = await self._create_conversation(client, system_prompt)
                for message in wire_messages:
                    message_id = await self._post_message(client, conversation_id, message)
                    url = f"{self._api_root}/conversations/{conversation_id}/messages/{message_id}/events"
                    async with client.stream("GET", url, headers=self._headers()) as response:
                        _raise_for_status(response, "Failed to get message events")
                        LOGGER.debug("streaming events message=%s", message_id)
                        async for data in response.aiter_bytes():
                            yield {"data": data}
                    yield {"end_of_stream": True}
            except httpx.HTTPError as exc:
                msg = f"Dust request failed: {exc}"
                raise TransportError(msg) from exc

    async def _create_conversation(self, client: httpx.AsyncClient, system_prompt: str) -> str:
        body = {
            "message": {
                "content": system_prompt,
                "mentions": [{"configurationId": self.configuration_id}],
            },
            "visibility": "unlisted",
            "blocking": True,
        }
        response = await client.post(f"{self._api_root}/conversations", json=body, headers=self._headers())
        _raise_for_status(response, "Failed to create conversation")
        conversation_id = _extract_sid(_json_body(response, "conversation"), "conversation")
        LOGGER.debug("created conversation=%s agent=%s", conversation_id, self.configuration_id)
        return conversation_id

    async def _post_message(self, client: httpx.AsyncClient, conversation_id: str, message: WireMessage) -> str:
        body = {
            "content": message.to_payload_content(),
            "mentions": [{"configurationId": self.configuration_id}],
        }
        response = await client.post(
            f"{self._api_root}/conversations/{conversation_id}/messages",
            json=body,
            headers=self._headers(),
        )
        _raise_for_status(response, "Failed to send message")
        message_id = _extract_sid(_json_body(response, "message"), "message")
        LOGGER.debug("posted message=%s role=%s conversation=%s", message_id, message.role, conversation_id)
        return message_id

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.api_key}"}


class DustStreamIterator(BaseStreamIterator):
    """Stream iterator driving one Dust request lifecycle."""

    def __init__(
        self,
        chunks: AsyncGenerator[dict[str, Any], None],
        *,
        normalizer: StreamNormalizer | None = None,
    ) -> None:
        self._chunks = chunks
        super().__init__(normalizer or DustEventNormalizer())

    async def _get_next_chunk(self) -> dict[str, Any]:
        return await self._chunks.__anext__()

    async def _on_close(self) -> None:
        await self._chunks.aclose()


class DustEventNormalizer:
    """Normalize framed Dust event bytes into canonical events.

    Chunks are either ``{"data": bytes}`` or ``{"end_of_stream": True}``. The
    normalizer resets after every end-of-stream marker so one instance can
    drain the event streams of several posted messages in turn.
    """

    def __init__(self, *, mode: StreamMode = StreamMode.TOOL_AWARE) -> None:
        self._mode = StreamMode(mode)
        self._lines = SSELineBuffer()
        self._fragments: list[str] = []

    async def normalize_chunk(self, chunk: Mapping[str, Any]) -> list[StreamEvent]:
        if chunk.get("end_of_stream"):
            events = self._normalize_lines(self._lines.flush())
            events.extend(self._flush_text())
            return events

        data = chunk.get("data", b"")
        if isinstance(data, str):
            data = data.encode("utf-8")
        return self._normalize_lines(self._lines.feed(data))

    def _normalize_lines(self, lines: Sequence[str]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for line in lines:
            try:
                payload = decode_event_line(line)
            except DecodeError as exc:
                LOGGER.warning("skipping event line: %s line=%r", exc, exc.line)
                continue
            if payload is None:
                continue
            event = self._normalize_payload(payload)
            if event is not None:
                events.append(event)
        return events

    def _normalize_payload(self, payload: Mapping[str, Any]) -> StreamEvent | None:
        event_type = payload.get("type")
        data = payload.get("data")
        if not isinstance(data, Mapping):
            data = {}

        if event_type == "message":
            content = data.get("content")
            if not isinstance(content, str) or not content:
                return None
            if self._mode is StreamMode.SIMPLE:
                return TextEvent(text=content)
            self._fragments.append(content)
            return None

        if event_type == "usage":
            return UsageEvent(
                input_tokens=_token_count(data.get("prompt_tokens")),
                output_tokens=_token_count(data.get("completion_tokens")),
            )

        return None

    def _flush_text(self) -> list[StreamEvent]:
        if not self._fragments:
            return []
        text = "".join(self._fragments)
        self._fragments.clear()

        rendered = render_parsed_response(parse_response(text))
        if not rendered:
            return []
        return [TextEvent(text=rendered)]


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    msg = f"{action}: {response.status_code}"
    raise TransportError(msg, status_code=response.status_code)


def _json_body(response: httpx.Response, what: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        msg = f"{what} response is not valid JSON"
        raise ProtocolMismatchError(msg) from exc


def _extract_sid(payload: Any, key: str) -> str:
    entity = payload.get(key) if isinstance(payload, Mapping) else None
    sid = entity.get("sId") if isinstance(entity, Mapping) else None
    if not isinstance(sid, str) or not sid:
        msg = f"{key} response is missing '{key}.sId'"
        raise ProtocolMismatchError(msg)
    return sid


def _token_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not value.is_integer():
        return 0
    if value < 0:
        return 0
    return int(value)
