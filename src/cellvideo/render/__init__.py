"""
Render Module
=============

Per-frame transformation from source pixels to terminal text.

Components:
    - BoxFilterDownscaler: Aspect-preserving box-filter resampling
    - RowPairEncoder: Half-block truecolor escape encoding

Example:
    from cellvideo.render import BoxFilterDownscaler, RowPairEncoder

    downscaler = BoxFilterDownscaler(source_size, target_size)
    encoder = RowPairEncoder()

    block = encoder.encode(downscaler.downscale(frame))
"""

from cellvideo.render.downscale import (
    BoxFilterDownscaler,
    box_filter,
    compute_scale_factor,
    downscale,
    source_region,
)
from cellvideo.render.encoder import (
    CLEAR_SCREEN,
    CURSOR_HOME,
    ColorParameter,
    RowPairEncoder,
    encode,
    esc_sequence,
    stack_pixels,
)

__all__ = [
    # Downscale
    "BoxFilterDownscaler",
    "box_filter",
    "compute_scale_factor",
    "downscale",
    "source_region",
    # Encoder
    "ColorParameter",
    "RowPairEncoder",
    "encode",
    "esc_sequence",
    "stack_pixels",
    "CURSOR_HOME",
    "CLEAR_SCREEN",
]
