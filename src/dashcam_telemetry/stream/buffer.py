"""
Event Buffer
============

Async-safe bounded queue of created-file paths.

This module provides the EventBuffer class, which sits between the
filesystem watcher and the event dispatcher.

Design Rules:
    - Fixed maximum size (drops oldest on overflow)
    - Must be fed from the event loop thread; the watcher thread uses
      loop.call_soon_threadsafe(buffer.put_nowait, path)
    - Exposes minimal metrics for observability
    - Does NOT classify or stat paths
"""

import asyncio
import logging
from typing import List, Optional


logger = logging.getLogger(__name__)


class EventBuffer:
    """
    Async-safe bounded queue for path events.

    Uses a drop-oldest policy when full; put_nowait never blocks the
    producer.

    Attributes:
        maxsize: Maximum number of events to buffer
        dropped_count: Number of events dropped due to overflow

    Example:
        buffer = EventBuffer(maxsize=1000)

        # Producer
        buffer.put_nowait("/mnt/data/images/frame_0001.jpg")

        # Consumer
        path = await buffer.get(timeout=1.0)
    """

    def __init__(self, maxsize: int = 1000) -> None:
        """
        Initialize event buffer.

        Args:
            maxsize: Maximum events to buffer. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._dropped_count: int = 0
        self._total_put: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of events in buffer."""
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Number of events dropped due to overflow."""
        return self._dropped_count

    @property
    def total_put(self) -> int:
        """Total events ever put into buffer."""
        return self._total_put

    def put_nowait(self, path: str) -> bool:
        """
        Add an event, dropping the oldest if full.

        Returns:
            True if added without dropping, False if the oldest event was
            dropped to make room.
        """
        self._total_put += 1
        dropped = False

        if self._queue.full():
            try:
                dropped_path = self._queue.get_nowait()
                self._dropped_count += 1
                dropped = True
                logger.warning(
                    f"Event buffer full, dropped oldest event {dropped_path}. "
                    f"Total dropped: {self._dropped_count}"
                )
            except asyncio.QueueEmpty:
                pass

        self._queue.put_nowait(path)
        return not dropped

    async def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Get next event from buffer.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            Next path, or None if timeout occurred.
        """
        try:
            if timeout is not None:
                return await asyncio.wait_for(self._queue.get(), timeout=timeout)
            return await self._queue.get()
        except asyncio.TimeoutError:
            return None

    def get_nowait(self) -> Optional[str]:
        """
        Get next event without waiting.

        Returns:
            Next path if available, None otherwise.
        """
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def drain(self) -> List[str]:
        """Remove and return every buffered event, oldest first."""
        paths = []
        while (path := self.get_nowait()) is not None:
            paths.append(path)
        return paths

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, maxsize, dropped_count, total_put
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "dropped_count": self._dropped_count,
            "total_put": self._total_put,
        }
