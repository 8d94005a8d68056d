"""
Data Models
===========

Typed pixel and geometry models for cellvideo.

This module re-exports all data models for convenient access.

Models:
    Frame:
        - Pixel: 8-bit RGB color
        - Frame: numpy-backed RGB pixel grid
        - RawFrameError: Raised on malformed raw buffers

    Geometry:
        - Size: Grid dimensions
        - Region: Half-open averaging window
"""

from cellvideo.models.frame import (
    Frame,
    Pixel,
    RawFrameError,
    raw_frame_length,
)
from cellvideo.models.geometry import Region, Size

__all__ = [
    # Frame
    "Pixel",
    "Frame",
    "RawFrameError",
    "raw_frame_length",
    # Geometry
    "Size",
    "Region",
]
