"""Async runtime loop coordinating adapters, events, and transcripts."""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Sequence

from dustbridge.core.adapters import ModelAdapter
from dustbridge.core.adapters.stream import BaseStreamIterator, StreamEvent, TextEvent, UsageEvent
from dustbridge.core.message import Message

from .state import AgentState


LOGGER = logging.getLogger(__name__)


class SessionTranscript:
    """Buffer of streaming events and state snapshots for deterministic replay."""

    def __init__(self) -> None:
        self._events: list[StreamEvent] = []
        self._states: list[AgentState] = []

    def record(self, event: StreamEvent, state: AgentState) -> None:
        """Append an event alongside a snapshot of the agent state."""

        self._events.append(event)
        self._states.append(state.snapshot())

    @property
    def events(self) -> tuple[StreamEvent, ...]:
        """Return the recorded events in emission order."""

        return tuple(self._events)

    @property
    def states(self) -> tuple[AgentState, ...]:
        """Return state snapshots for each recorded event."""

        return tuple(self._states)

    def __len__(self) -> int:
        return len(self._events)

    async def replay(self) -> AsyncIterator[StreamEvent]:
        """Yield recorded events as an async iterator."""

        for event in self._events:
            yield event


class AgentRuntime(AsyncIterator[StreamEvent]):
    """Drive one adapter request while tracking state and a transcript."""

    def __init__(
        self,
        adapter: ModelAdapter,
        system_prompt: str,
        messages: Sequence[Message],
        /,
        *,
        transcript: SessionTranscript | None = None,
    ) -> None:
        self._adapter = adapter
        self._system_prompt = system_prompt
        self._messages = tuple(messages)
        self._stream: BaseStreamIterator | None = None
        self._closed = False

        self.state = AgentState()
        self.transcript = transcript or SessionTranscript()

    def __aiter__(self) -> AgentRuntime:
        return self

    async def __anext__(self) -> StreamEvent:
        if self._closed:
            raise StopAsyncIteration

        iterator = self._ensure_stream()
        try:
            event = await iterator.__anext__()
        except StopAsyncIteration:
            self.on_complete()
            await self.aclose()
            raise
        except BaseException:
            await self.aclose()
            raise

        self._handle_event(event)
        return event

    @property
    def closed(self) -> bool:
        """Whether the runtime has been closed."""

        return self._closed

    async def aclose(self) -> None:
        """Close the underlying stream iterator and mark the runtime closed."""

        if self._closed:
            return

        self._closed = True
        iterator = self._stream
        self._stream = None
        if iterator is None:
            return

        closer = getattr(iterator, "aclose", None)
        if closer is not None:
            result = closer()
            if inspect.isawaitable(result):
                await result
            return

        await iterator.close()

    def on_text(self, event: TextEvent) -> None:
        """Log text events emitted by the adapter."""

        LOGGER.debug("on_text length=%s content=%r", len(event.text), event.text[:80])

    def on_usage(self, event: UsageEvent) -> None:
        """Log token usage reported by the provider."""

        LOGGER.info("on_usage input=%s output=%s", event.input_tokens, event.output_tokens)

    def on_complete(self) -> None:
        """Log completion of the streaming session."""

        LOGGER.info(
            "on_complete output_length=%s text_events=%s usage_events=%s",
            len(self.state.output),
            len(self.state.texts),
            len(self.state.usage),
        )

    def _ensure_stream(self) -> BaseStreamIterator:
        if self._stream is None:
            self._stream = self._adapter.create_message(self._system_prompt, self._messages)
        return self._stream

    def _handle_event(self, event: StreamEvent) -> None:
        if isinstance(event, TextEvent):
            self.state.texts.append(event)
            self.state.memory.append(event.text)
            count = self.state.metadata.setdefault("text_events", 0)
            self.state.metadata["text_events"] = count + 1
            self.on_text(event)
        elif isinstance(event, UsageEvent):
            self._handle_usage(event)
        else:  # pragma: no cover
            LOGGER.debug("Unhandled event type: %s", type(event).__name__)

        self.transcript.record(event, self.state)

    def _handle_usage(self, event: UsageEvent) -> None:
        self.state.usage.append(event)
        metadata = self.state.metadata
        metadata["input_tokens"] = metadata.get("input_tokens", 0) + event.input_tokens
        metadata["output_tokens"] = metadata.get("output_tokens", 0) + event.output_tokens
        self.on_usage(event)
