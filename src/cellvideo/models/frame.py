"""
Frame Data Model
=================

Internal pixel representation for the rendering pipeline.

This module defines the typed Pixel and Frame classes that are passed
between the frame stream, the downscaler and the encoder.

Wire Format:
    Raw frames arrive as width * height * 4 bytes, row-major, top row
    first, channel order R, G, B, unused. The fourth channel carries no
    rendering meaning: it is ignored on read and zero-filled on write.

Design Rules:
    - A Frame owns its pixel array; parsing copies out of the raw buffer
    - Stages hand Frames over wholesale, they never share a mutable array
"""

from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from cellvideo.models.geometry import Region, Size


CHANNELS_PER_RAW_PIXEL = 4


class RawFrameError(ValueError):
    """Raised when a raw frame buffer does not match the expected size."""
    pass


@dataclass(frozen=True, slots=True)
class Pixel:
    """
    A single RGB color with 8-bit channels.

    Attributes:
        r: Red channel (0-255)
        g: Green channel (0-255)
        b: Blue channel (0-255)
    """

    r: int
    g: int
    b: int

    ZERO: ClassVar["Pixel"]

    def __post_init__(self) -> None:
        """Validate channel range."""
        for channel in (self.r, self.g, self.b):
            if not 0 <= channel <= 255:
                raise ValueError(f"Channel value out of range: {channel}")

    def as_tuple(self) -> tuple:
        return (self.r, self.g, self.b)


Pixel.ZERO = Pixel(0, 0, 0)


class Frame:
    """
    Rectangular RGB pixel buffer.

    Backed by a (height, width, 3) uint8 numpy array. The array is owned
    by the Frame; callers that need to keep pixels across pipeline stages
    should use copy().

    Attributes:
        pixels: (H, W, 3) uint8 array
    """

    __slots__ = ("pixels",)

    def __init__(self, pixels: np.ndarray) -> None:
        """
        Wrap an RGB array.

        Args:
            pixels: (H, W, 3) array of dtype uint8

        Raises:
            ValueError: If the array has the wrong shape or dtype
        """
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise ValueError(f"Frame pixels must be (H, W, 3), got {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Frame pixels must be uint8, got {pixels.dtype}")

        self.pixels = pixels

    @classmethod
    def blank(cls, width: int, height: int) -> "Frame":
        """Create a frame filled with the zero color."""
        return cls(np.zeros((height, width, 3), dtype=np.uint8))

    @classmethod
    def filled(cls, width: int, height: int, pixel: Pixel) -> "Frame":
        """Create a frame of uniform color."""
        pixels = np.empty((height, width, 3), dtype=np.uint8)
        pixels[...] = pixel.as_tuple()
        return cls(pixels)

    @classmethod
    def from_raw(cls, data: bytes, width: int, height: int) -> "Frame":
        """
        Parse a raw RGB0 frame buffer.

        Args:
            data: Exactly width * height * 4 bytes
            width: Frame width in pixels
            height: Frame height in pixels

        Returns:
            New Frame with its own copy of the RGB channels

        Raises:
            RawFrameError: If the buffer length does not match
        """
        expected = raw_frame_length(width, height)
        if len(data) != expected:
            raise RawFrameError(
                f"Raw frame has {len(data)} bytes, expected {expected} "
                f"for {width}x{height}"
            )

        raw = np.frombuffer(data, dtype=np.uint8).reshape(
            height, width, CHANNELS_PER_RAW_PIXEL
        )
        return cls(np.ascontiguousarray(raw[..., :3]))

    def to_raw(self) -> bytes:
        """Serialize to the RGB0 wire format with a zeroed fourth channel."""
        raw = np.zeros((self.height, self.width, CHANNELS_PER_RAW_PIXEL), dtype=np.uint8)
        raw[..., :3] = self.pixels
        return raw.tobytes()

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    @property
    def bounds(self) -> Region:
        return Region.bounds(self.size)

    def pixel_at(self, x: int, y: int) -> Pixel:
        """Return the color at (x, y)."""
        r, g, b = self.pixels[y, x].tolist()
        return Pixel(r, g, b)

    def copy(self) -> "Frame":
        return Frame(self.pixels.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return np.array_equal(self.pixels, other.pixels)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel data."""
        return f"Frame(width={self.width}, height={self.height})"


def raw_frame_length(width: int, height: int) -> int:
    """Number of bytes in one raw RGB0 frame."""
    return width * height * CHANNELS_PER_RAW_PIXEL
