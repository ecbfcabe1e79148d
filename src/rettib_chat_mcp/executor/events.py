"""Event sinks that carry stream and terminal events to a consumer."""

import asyncio
from collections import deque
from typing import Any, AsyncIterator, Optional, Protocol


class EventSink(Protocol):
    """Anything that accepts published events.

    Delivery is best effort: a sink whose consumer has gone away drops
    events silently instead of raising into the producer.
    """

    def publish(self, event: Any) -> None:
        ...


class QueueEventSink:
    """An async channel of events, closed once the producer is done.

    Iterate with ``async for`` to receive events as they are published.
    Events published after ``close()`` are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: Any) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class BufferedEventSink:
    """Bounded buffer drained by polling.

    Oldest events are discarded once ``maxlen`` is reached.
    """

    def __init__(self, maxlen: Optional[int] = 2000) -> None:
        self._buffer: deque = deque(maxlen=maxlen)
        self.dropped = 0

    def publish(self, event: Any) -> None:
        if self._buffer.maxlen is not None and len(self._buffer) == self._buffer.maxlen:
            self.dropped += 1
        self._buffer.append(event)

    def drain(self, limit: Optional[int] = None) -> list[Any]:
        """Remove and return buffered events, oldest first."""
        count = len(self._buffer) if limit is None else min(limit, len(self._buffer))
        return [self._buffer.popleft() for _ in range(count)]

    def __len__(self) -> int:
        return len(self._buffer)
