"""
OpenCV Frame Source
===================

Frame acquisition through cv2.VideoCapture, for hosts without the
ffmpeg command-line tools.

Design Rules:
    - This is the ONLY place in the codebase that decodes with OpenCV
    - Decoded BGR frames are converted to the RGB0 wire format
    - Blocking capture calls run in a worker thread via asyncio.to_thread
    - The capture is never released while a read is still in flight
"""

import asyncio
import logging
from typing import Optional

import cv2
import numpy as np

from cellvideo.models.geometry import Size
from cellvideo.stream.source import SourceUnavailableError


logger = logging.getLogger(__name__)


def bgr_to_raw(bgr: np.ndarray) -> bytes:
    """
    Convert an OpenCV BGR image to RGB0 frame bytes.

    Args:
        bgr: (H, W, 3) uint8 image as returned by VideoCapture.read()

    Returns:
        H * W * 4 bytes with a zeroed fourth channel

    Raises:
        ValueError: If the image has an unexpected shape or dtype
    """
    if bgr.ndim != 3 or bgr.shape[2] != 3:
        raise ValueError(f"Invalid image shape: {bgr.shape}")
    if bgr.dtype != np.uint8:
        raise ValueError(f"Invalid dtype: {bgr.dtype}")

    rgba = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA)
    rgba[..., 3] = 0
    return rgba.tobytes()


class OpenCVFileSource:
    """
    Local video file decoded by OpenCV.

    Attributes:
        path: Video file path
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._capture: Optional[cv2.VideoCapture] = None
        self._size: Optional[Size] = None
        self._pending_read: Optional[asyncio.Task] = None

    def _open(self) -> cv2.VideoCapture:
        if self._capture is None:
            capture = cv2.VideoCapture(self.path)
            if not capture.isOpened():
                capture.release()
                raise SourceUnavailableError(f"OpenCV could not open {self.path}")
            self._capture = capture
        return self._capture

    async def probe_dimensions(self) -> Size:
        if self._size is None:
            capture = await asyncio.to_thread(self._open)
            width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
            height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

            if width <= 0 or height <= 0:
                raise SourceUnavailableError(
                    f"OpenCV reported invalid dimensions {width}x{height} for {self.path}"
                )

            self._size = Size(width, height)
            logger.info(f"Probed {self.path} with OpenCV: {self._size}")
        return self._size

    async def start(self) -> None:
        await self.probe_dimensions()
        logger.info(f"Decoding {self.path} with OpenCV")

    async def next_frame(self) -> Optional[bytes]:
        if self._capture is None or self._size is None:
            raise RuntimeError("Frame source has not been started")

        # Outlives a cancelled caller; close() waits on it
        self._pending_read = asyncio.ensure_future(asyncio.to_thread(self._capture.read))
        ok, bgr = await asyncio.shield(self._pending_read)
        self._pending_read = None

        if not ok or bgr is None:
            return None

        if bgr.shape[:2] != (self._size.height, self._size.width):
            logger.warning(
                f"Decoded frame is {bgr.shape[1]}x{bgr.shape[0]}, "
                f"expected {self._size}; ending stream"
            )
            return None

        return bgr_to_raw(bgr)

    async def close(self) -> None:
        pending, self._pending_read = self._pending_read, None
        if pending is not None:
            if not pending.done():
                logger.debug("Waiting for in-flight OpenCV read before release")
                await asyncio.wait({pending})
            if not pending.cancelled() and pending.exception() is not None:
                logger.debug(f"In-flight OpenCV read failed: {pending.exception()}")

        if self._capture is not None:
            self._capture.release()
            self._capture = None

    async def __aenter__(self) -> "OpenCVFileSource":
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
