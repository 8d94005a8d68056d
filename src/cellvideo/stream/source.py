"""
Frame Source & Producer
=======================

Abstraction over raw video acquisition, plus the background task that
moves frames from a source into the pipeline's FrameBuffer.

This module provides:
    - FrameSource: Protocol every acquisition backend implements
    - SourceUnavailableError: Fatal failure before the first frame
    - FrameProducer: Producer task feeding a FrameBuffer

Design Rules:
    - Sources return whole frames only; a truncated read is end-of-stream
    - The producer ALWAYS closes the buffer and the source when it exits
    - Mid-stream failures end the stream, they never crash the pipeline
"""

import asyncio
import logging
from typing import Optional, Protocol

from cellvideo.models.geometry import Size
from cellvideo.stream.buffer import FrameBuffer


logger = logging.getLogger(__name__)


class SourceUnavailableError(Exception):
    """Raised when a frame source fails before producing its first frame."""
    pass


class FrameSource(Protocol):
    """
    Protocol for frame acquisition backends.

    Implementations:
        - FfmpegFileSource: ffprobe + ffmpeg decode of a local file
        - FfmpegUrlSource: downloader piped into ffmpeg
        - OpenCVFileSource: cv2.VideoCapture decode
        - MockFrameSource: synthetic test pattern
    """

    async def probe_dimensions(self) -> Size:
        """
        Query the frame size before streaming begins.

        Raises:
            SourceUnavailableError: If the size cannot be determined
        """
        ...

    async def start(self) -> None:
        """
        Begin acquisition.

        Raises:
            SourceUnavailableError: If the backend cannot be started
        """
        ...

    async def next_frame(self) -> Optional[bytes]:
        """
        Read the next frame.

        Returns:
            Exactly width * height * 4 bytes, or None at end-of-stream
        """
        ...

    async def close(self) -> None:
        """Release every process/handle held by the source."""
        ...


class FrameProducerMetrics:
    """Metrics for FrameProducer observability."""

    __slots__ = (
        "frames_produced",
        "stream_errors",
        "ended_normally",
    )

    def __init__(self) -> None:
        self.frames_produced: int = 0
        self.stream_errors: int = 0
        self.ended_normally: bool = False

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_produced": self.frames_produced,
            "stream_errors": self.stream_errors,
            "ended_normally": self.ended_normally,
        }


class FrameProducer:
    """
    Producer task for a FrameSource.

    Starts the source, then pushes every frame into the buffer in
    order. The buffer's single slot blocks the producer while the
    consumer is busy with the previous frame.

    Attributes:
        source: Backend supplying raw frames
        buffer: FrameBuffer shared with the pipeline
        metrics: Operational metrics

    Example:
        buffer = FrameBuffer()
        producer = FrameProducer(source, buffer)
        task = asyncio.create_task(producer.run())
    """

    def __init__(self, source: FrameSource, buffer: FrameBuffer) -> None:
        """
        Initialize frame producer.

        Args:
            source: Frame source (not yet started)
            buffer: FrameBuffer to push frames into
        """
        self.source = source
        self.buffer = buffer
        self.metrics = FrameProducerMetrics()

    async def run(self) -> None:
        """
        Stream frames until the source is exhausted.

        Raises:
            SourceUnavailableError: If the source fails to start or
                fails before its first frame. The buffer is still closed
                so the consumer can exit.
        """
        try:
            await self.source.start()
            logger.info("FrameProducer started")

            while True:
                try:
                    frame = await self.source.next_frame()
                except (OSError, ValueError, SourceUnavailableError) as e:
                    if isinstance(e, SourceUnavailableError) and self.metrics.frames_produced == 0:
                        raise
                    self.metrics.stream_errors += 1
                    logger.error(f"Frame source failed mid-stream: {e}")
                    break

                if frame is None:
                    self.metrics.ended_normally = True
                    logger.info(
                        f"Frame source exhausted after "
                        f"{self.metrics.frames_produced} frames"
                    )
                    break

                await self.buffer.put(frame)
                self.metrics.frames_produced += 1

        finally:
            await self.buffer.close()
            # Source cleanup runs to completion even under repeated cancel
            await asyncio.shield(self.source.close())
            logger.info("FrameProducer stopped")
