"""
Frame Buffer
=============

Async single-slot handoff queue between the frame producer and the
rendering pipeline.

This module provides the FrameBuffer class, which acts as the interface
between a FrameSource and the Pipeline.

Design Rules:
    - Bounded (default capacity one); put() blocks while the slot is full
    - Never drops frames, order is strictly FIFO
    - close() marks end-of-stream; get() returns None from then on
    - Does NOT parse or modify frames
"""

import asyncio
import logging
from typing import Optional


logger = logging.getLogger(__name__)


_END_OF_STREAM = object()


class BufferClosedError(Exception):
    """Raised when a frame is put into a closed buffer."""
    pass


class FrameBuffer:
    """
    Async-safe bounded handoff queue for raw frames.

    This is the ONLY interface between the frame producer and the
    pipeline. A full slot suspends the producer until the consumer
    takes the previous frame, so memory use stays bounded no matter
    how far the consumer falls behind.

    Attributes:
        maxsize: Maximum number of frames waiting in the queue
        closed: Whether end-of-stream has been signalled

    Example:
        buffer = FrameBuffer()

        # Producer
        await buffer.put(frame_bytes)
        await buffer.close()

        # Consumer
        while (data := await buffer.get()) is not None:
            render(data)
    """

    def __init__(self, maxsize: int = 1) -> None:
        """
        Initialize frame buffer.

        Args:
            maxsize: Capacity of the queue. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        # One extra slot so close() never waits behind a full queue
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)
        self._slots = asyncio.Semaphore(maxsize)
        self._closed: bool = False
        self._drained: bool = False
        self._total_put: int = 0
        self._total_get: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of frames waiting in buffer."""
        return self._queue.qsize() - (1 if self._closed and not self._drained else 0)

    @property
    def closed(self) -> bool:
        """Whether end-of-stream has been signalled."""
        return self._closed

    @property
    def total_put(self) -> int:
        """Total frames ever put into buffer."""
        return self._total_put

    @property
    def total_get(self) -> int:
        """Total frames handed to the consumer."""
        return self._total_get

    async def put(self, frame: bytes) -> None:
        """
        Hand a frame to the consumer, waiting for a free slot.

        Args:
            frame: Raw frame bytes. Ownership passes to the consumer.

        Raises:
            BufferClosedError: If close() was already called
        """
        if self._closed:
            raise BufferClosedError("Cannot put frame into a closed buffer")

        await self._slots.acquire()
        if self._closed:
            self._slots.release()
            raise BufferClosedError("Buffer closed while waiting for a free slot")

        self._queue.put_nowait(frame)
        self._total_put += 1

    async def close(self) -> None:
        """
        Signal end-of-stream.

        Frames already queued are still delivered before get()
        starts returning None. Calling close() twice is a no-op.
        """
        if self._closed:
            return

        self._closed = True
        self._queue.put_nowait(_END_OF_STREAM)
        logger.debug(f"FrameBuffer closed after {self._total_put} frames")

    async def get(self) -> Optional[bytes]:
        """
        Get next frame from buffer.

        Returns:
            Next frame, or None once the buffer is closed and drained.
        """
        if self._drained:
            return None

        item = await self._queue.get()
        if item is _END_OF_STREAM:
            self._drained = True
            return None

        self._slots.release()
        self._total_get += 1
        return item

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, maxsize, total_put, total_get, closed
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "total_put": self._total_put,
            "total_get": self._total_get,
            "closed": self._closed,
        }
