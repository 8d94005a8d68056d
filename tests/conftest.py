"""
Test Configuration
==================

Pytest fixtures and test configuration for cellvideo.
"""

import asyncio
from typing import List, Optional

import numpy as np
import pytest

from cellvideo.models import Frame, Pixel, Size
from cellvideo.stream import SourceUnavailableError


class ListFrameSource:
    """In-memory FrameSource replaying a fixed list of raw frames."""

    def __init__(
        self,
        size: Size,
        frames: List[bytes],
        fail_on_start: bool = False,
        error_after: Optional[int] = None,
        hang_after: Optional[int] = None,
        unavailable_after: Optional[int] = None,
    ) -> None:
        self.size = size
        self.frames = list(frames)
        self.fail_on_start = fail_on_start
        self.error_after = error_after
        self.hang_after = hang_after
        self.unavailable_after = unavailable_after
        self.started = False
        self.closed = False
        self.served = 0

    async def probe_dimensions(self) -> Size:
        return self.size

    async def start(self) -> None:
        if self.fail_on_start:
            raise SourceUnavailableError("test source refused to start")
        self.started = True

    async def next_frame(self) -> Optional[bytes]:
        if self.unavailable_after is not None and self.served >= self.unavailable_after:
            raise SourceUnavailableError("test source lost its input")
        if self.error_after is not None and self.served >= self.error_after:
            raise OSError("test source broke")
        if self.hang_after is not None and self.served >= self.hang_after:
            await asyncio.Event().wait()
        if self.served >= len(self.frames):
            return None

        frame = self.frames[self.served]
        self.served += 1
        return frame

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def list_source():
    """Provide the ListFrameSource class."""
    return ListFrameSource


@pytest.fixture
def red():
    return Pixel(255, 0, 0)


@pytest.fixture
def random_frame():
    """Provide a factory for reproducible random frames."""

    def _make(width: int, height: int, seed: int = 0) -> Frame:
        rng = np.random.default_rng(seed)
        return Frame(rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8))

    return _make


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run without CELLVIDEO_* variables and outside the repository root."""
    for name in (
        "CELLVIDEO_WIDTH",
        "CELLVIDEO_HEIGHT",
        "CELLVIDEO_SOURCE_BACKEND",
        "CELLVIDEO_PATH",
        "CELLVIDEO_URL",
        "CELLVIDEO_FFMPEG",
        "CELLVIDEO_FFPROBE",
        "CELLVIDEO_DOWNLOADER",
        "CELLVIDEO_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
