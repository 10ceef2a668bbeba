"""
Output channel between the orchestrator and the HTTP transport.

The orchestrator writes ordered StreamEvents into an EventChannel; the
transport drains it and encodes each event as a Server-Sent Event.
"""

import asyncio
import json
from typing import AsyncIterator, Optional

from .models import StreamEvent

_CLOSED = object()


class EventChannel:
    """Single-producer, single-consumer queue of stream events."""

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: StreamEvent) -> None:
        if self._closed:
            raise RuntimeError("Cannot emit on a closed channel")
        await self._queue.put(event)

    async def close(self) -> None:
        """Signal end of stream; idempotent."""
        if not self._closed:
            self._closed = True
            await self._queue.put(_CLOSED)

    async def next_event(self) -> Optional[StreamEvent]:
        """Next event in write order, or None once the channel is closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self.next_event()
            if event is None:
                return
            yield event


def encode_sse(event: StreamEvent) -> str:
    """Encode one event as an SSE ``data:`` frame."""
    return f"data: {json.dumps(event.to_wire(), default=str)}\n\n"
