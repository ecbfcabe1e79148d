"""Bookkeeping for in-flight one-shot streams."""

import asyncio
from dataclasses import dataclass
from typing import Optional

from .logging import get_logger


@dataclass
class ActiveStream:
    stream_id: str
    process: asyncio.subprocess.Process


class StreamRegistry:
    """Live one-shot streams keyed by stream id, so they can be cancelled."""

    def __init__(self) -> None:
        self._streams: dict[str, ActiveStream] = {}

    def register(self, stream_id: str, process: asyncio.subprocess.Process) -> ActiveStream:
        active = ActiveStream(stream_id=stream_id, process=process)
        self._streams[stream_id] = active
        return active

    def unregister(self, stream_id: str) -> None:
        self._streams.pop(stream_id, None)

    def get(self, stream_id: str) -> Optional[ActiveStream]:
        return self._streams.get(stream_id)

    def __contains__(self, stream_id: object) -> bool:
        return stream_id in self._streams

    def __len__(self) -> int:
        return len(self._streams)

    def cancel(self, stream_id: str) -> bool:
        """Ask a live stream's process to terminate.

        Returns False for unknown or already exited streams. The pending
        run still settles through its own exit handling.
        """
        active = self._streams.get(stream_id)
        if active is None or active.process.returncode is not None:
            return False

        try:
            active.process.terminate()
        except ProcessLookupError:
            # Exited between the returncode check and the signal
            return True
        get_logger().info(f"[{stream_id[:8]}] Cancellation requested")
        return True
