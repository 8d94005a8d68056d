"""
Mock Frame Source
=================

Deterministic synthetic frame source for demos and testing.

Generates scrolling vertical color bars without any external process,
so the whole pipeline can run on hosts without video tooling.
"""

import logging
from typing import Optional

import numpy as np

from cellvideo.models.frame import Frame
from cellvideo.models.geometry import Size


logger = logging.getLogger(__name__)


# Classic SMPTE-style bar colors
BAR_COLORS = np.array(
    [
        (192, 192, 192),
        (192, 192, 0),
        (0, 192, 192),
        (0, 192, 0),
        (192, 0, 192),
        (192, 0, 0),
        (0, 0, 192),
    ],
    dtype=np.uint8,
)


class MockFrameSource:
    """
    Deterministic synthetic frame source.

    Frame n shows the color bars shifted left by n * speed pixels.
    The same (size, frame_count, speed) always yields the same bytes.

    Attributes:
        size: Frame size to generate
        frame_count: Frames before end-of-stream (0 = unlimited)
        speed: Horizontal scroll in pixels per frame
    """

    def __init__(self, size: Size, frame_count: int = 300, speed: int = 2) -> None:
        """
        Initialize mock frame source.

        Args:
            size: Frame size
            frame_count: Number of frames to produce (0 = unlimited)
            speed: Scroll speed in pixels per frame
        """
        size.validate_positive("mock frame size")
        if frame_count < 0:
            raise ValueError("frame_count must be >= 0")

        self.size = size
        self.frame_count = frame_count
        self.speed = speed
        self._produced: int = 0
        self._started: bool = False

        bar_width = max(1, size.width // len(BAR_COLORS))
        columns = np.arange(size.width) // bar_width % len(BAR_COLORS)
        self._row = BAR_COLORS[columns]

        logger.info(
            f"MockFrameSource initialized: size={size}, "
            f"frame_count={frame_count}, speed={speed}"
        )

    async def probe_dimensions(self) -> Size:
        return self.size

    async def start(self) -> None:
        self._produced = 0
        self._started = True

    def render(self, index: int) -> Frame:
        """Frame number ``index`` of the pattern."""
        row = np.roll(self._row, -index * self.speed, axis=0)
        pixels = np.broadcast_to(row, (self.size.height, self.size.width, 3))
        return Frame(np.ascontiguousarray(pixels))

    async def next_frame(self) -> Optional[bytes]:
        if not self._started:
            raise RuntimeError("Frame source has not been started")

        if self.frame_count and self._produced >= self.frame_count:
            return None

        frame = self.render(self._produced)
        self._produced += 1
        return frame.to_raw()

    async def close(self) -> None:
        self._started = False

    async def __aenter__(self) -> "MockFrameSource":
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
