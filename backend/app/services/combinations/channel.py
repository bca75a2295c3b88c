"""
Progress channel: the push abstraction a pruning run emits events through.

One channel per run. Events are delivered in emission order. QueueProgressChannel is
bounded, so a slow consumer makes the producer wait instead of buffering without limit;
the transport drains it with `async for event in channel`.
"""
import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List

from app.errors import ChannelClosed


@dataclass(frozen=True)
class ProgressEvent:
    name: str  # progress, complete, error, done
    payload: Dict[str, Any]

    def to_sse(self) -> str:
        return format_sse(self.name, self.payload)


def format_sse(event: str, data: dict) -> str:
    """Format one event as an SSE message (event line, data line, blank line)."""
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


class ProgressChannel:
    """Base channel. Subclasses implement _deliver."""

    def __init__(self):
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        if self._closed:
            raise ChannelClosed(f"Cannot emit '{event_name}' on a closed channel")
        await self._deliver(ProgressEvent(event_name, payload))

    async def _deliver(self, event: ProgressEvent) -> None:
        raise NotImplementedError

    def close(self) -> None:
        self._closed = True


class CollectingChannel(ProgressChannel):
    """Keeps every event in a list. For non-streaming callers and tests."""

    def __init__(self):
        super().__init__()
        self.events: List[ProgressEvent] = []

    async def _deliver(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def names(self) -> List[str]:
        return [e.name for e in self.events]

    def of_type(self, name: str) -> List[ProgressEvent]:
        return [e for e in self.events if e.name == name]


_END = object()


class QueueProgressChannel(ProgressChannel):
    """Bounded asyncio.Queue between the pipeline (producer) and the transport (consumer)."""

    def __init__(self, maxsize: int = 100):
        super().__init__()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._end_pending = False

    async def _deliver(self, event: ProgressEvent) -> None:
        await self._queue.put(event)

    def close(self) -> None:
        """Producer is done. Events already queued are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._push_end()

    def abort(self) -> None:
        """Consumer went away. Further emits raise ChannelClosed; queued events are dropped."""
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._push_end()

    def _push_end(self) -> None:
        try:
            self._queue.put_nowait(_END)
            self._end_pending = False
        except asyncio.QueueFull:
            self._end_pending = True

    def __aiter__(self):
        return self

    async def __anext__(self) -> ProgressEvent:
        item = await self._queue.get()
        if self._end_pending:
            self._push_end()
        if item is _END:
            raise StopAsyncIteration
        return item
