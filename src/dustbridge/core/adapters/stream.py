"""Canonical streaming event schema and base iterator primitives."""

from __future__ import annotations

import abc
import asyncio
import inspect
from collections import deque
from dataclasses import dataclass
from typing import Any, AsyncIterator, Deque, Dict, List, Protocol, Union


@dataclass(slots=True)
class TextEvent:
    """A chunk of narrative assistant output."""

    text: str


@dataclass(slots=True)
class UsageEvent:
    """Token accounting reported by the provider."""

    input_tokens: int
    output_tokens: int


StreamEvent = Union[TextEvent, UsageEvent]


class BaseStreamIterator(AsyncIterator[StreamEvent], metaclass=abc.ABCMeta):
    """Shared async iterator driving provider-specific streaming adapters.

    Subclasses are responsible for sourcing raw provider chunks by
    implementing :meth:`_get_next_chunk`. Each chunk is normalized into zero or
    more :class:`StreamEvent` instances via a :class:`StreamNormalizer`. The
    iterator buffers normalized events so consumers receive a linear stream of
    canonical event objects regardless of how providers batch their updates.

    Any exception raised while reading, cancellation included, closes the
    iterator before it propagates. Each read runs as its own task so that
    :meth:`close` may be called from another coroutine while a read is
    pending; the pending read is cancelled and its consumer sees the end of
    the stream.
    """

    def __init__(self, normalizer: StreamNormalizer) -> None:
        self._normalizer = normalizer
        self._buffer: Deque[StreamEvent] = deque()
        self._closed = False
        self._closing = False
        self._close_lock = asyncio.Lock()
        self._pending_read: asyncio.Task[Dict[str, Any]] | None = None

    def __aiter__(self) -> BaseStreamIterator:
        return self

    async def __anext__(self) -> StreamEvent:
        buffered = self._pop_buffered_event()
        if buffered is not None:
            return buffered

        while True:
            if self._closed:
                raise StopAsyncIteration

            chunk = await self._consume_chunk()
            events = await self._normalizer.normalize_chunk(chunk)
            if not events:
                continue

            self._buffer.extend(events)
            buffered = self._pop_buffered_event()
            if buffered is not None:
                return buffered

    @property
    def closed(self) -> bool:
        """Whether the iterator has released its resources."""

        return self._closed

    async def close(self) -> None:
        """Release provider resources and prevent additional iteration."""

        async with self._close_lock:
            if self._closed:
                return

            self._closing = True
            try:
                await self._cancel_pending_read()
                await self._on_close()
            finally:
                self._closing = False
            self._closed = True

    async def aclose(self) -> None:
        await self.close()

    async def _consume_chunk(self) -> Dict[str, Any]:
        read = asyncio.create_task(self._get_next_chunk())
        self._pending_read = read
        try:
            return await read
        except asyncio.CancelledError:
            closed_elsewhere = (self._closing or self._closed) and not _current_task_cancelling()
            await self.close()
            if closed_elsewhere:
                raise StopAsyncIteration from None
            raise
        except BaseException:
            await self.close()
            raise
        finally:
            self._pending_read = None

    async def _cancel_pending_read(self) -> None:
        read = self._pending_read
        if read is None or read.done():
            return
        read.cancel()
        await asyncio.wait({read})

    def _pop_buffered_event(self) -> StreamEvent | None:
        if not self._buffer:
            return None
        return self._buffer.popleft()

    @abc.abstractmethod
    async def _get_next_chunk(self) -> Dict[str, Any]:
        """Retrieve the next raw chunk from the provider stream."""

    async def _on_close(self) -> None:
        """Allow subclasses to dispose provider resources when closing."""


class StreamNormalizer(Protocol):
    async def normalize_chunk(self, chunk: Dict[str, Any]) -> List[StreamEvent]:
        """Map a provider-specific chunk into canonical stream events."""


def _current_task_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


async def replay_stream(iterator: BaseStreamIterator) -> List[StreamEvent]:
    """Collect all events emitted by a stream iterator."""

    events: List[StreamEvent] = []
    try:
        async for event in iterator:
            events.append(event)
    finally:
        await iterator.close()
    return events


async def replay_events(events: AsyncIterator[StreamEvent]) -> str:
    """Concatenate TextEvent fragments into a single string."""

    fragments: List[str] = []
    closers = []

    for closer_name in ("aclose", "close"):
        closer = getattr(events, closer_name, None)
        if closer is not None and callable(closer):
            closers.append(closer)
            break

    try:
        async for event in events:
            if isinstance(event, TextEvent):
                fragments.append(event.text)
    finally:
        for closer in closers:
            result = closer()
            if inspect.isawaitable(result):
                await result

    return "".join(fragments)
