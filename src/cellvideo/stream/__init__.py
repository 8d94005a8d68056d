"""
Stream Module
=============

Raw frame acquisition and the producer/consumer handoff.

This module provides the ingestion layer for cellvideo:
    - FrameBuffer: Async single-slot handoff queue (blocks, never drops)
    - FrameSource: Protocol for acquisition backends
    - FrameProducer: Background task feeding a FrameBuffer
    - FfmpegFileSource / FfmpegUrlSource: ffmpeg-based backends
    - OpenCVFileSource: cv2.VideoCapture backend
    - MockFrameSource: Synthetic test pattern

Example:
    from cellvideo.stream import FrameBuffer, FrameProducer, FfmpegFileSource

    source = FfmpegFileSource("video.mp4")
    size = await source.probe_dimensions()

    buffer = FrameBuffer()
    task = asyncio.create_task(FrameProducer(source, buffer).run())

    while (data := await buffer.get()) is not None:
        process(data)
"""

from cellvideo.stream.buffer import BufferClosedError, FrameBuffer
from cellvideo.stream.source import (
    FrameProducer,
    FrameProducerMetrics,
    FrameSource,
    SourceUnavailableError,
)
from cellvideo.stream.ffmpeg import (
    FfmpegFileSource,
    FfmpegUrlSource,
    parse_probe_output,
    probe_video_size,
)
from cellvideo.stream.capture import OpenCVFileSource
from cellvideo.stream.mock import MockFrameSource


__all__ = [
    "BufferClosedError",
    "FrameBuffer",
    "FrameProducer",
    "FrameProducerMetrics",
    "FrameSource",
    "SourceUnavailableError",
    "FfmpegFileSource",
    "FfmpegUrlSource",
    "parse_probe_output",
    "probe_video_size",
    "OpenCVFileSource",
    "MockFrameSource",
]
