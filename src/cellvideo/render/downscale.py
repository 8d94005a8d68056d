"""
Box-Filter Downscaler
=====================

Resamples a source Frame onto the terminal cell grid by averaging
rectangular pixel regions.

Scale Factor:
    One factor is chosen per session from the source/target relationship
    and shared by both axes, so the picture keeps its proportions:

        square source    -> source.width  / min(target.width, target.height)
        landscape source -> source.width  / target.width
        portrait source  -> source.height / target.height

Sampling:
    Target cell (x, y) averages the source region

        [floor(x * f), floor(y * f)) .. (ceil(floor(x * f) + f), ceil(floor(y * f) + f))

    clamped to the source bounds. Channel sums use exact integer
    accumulation and are floor-divided by the pixel count. Regions that
    clamp to nothing yield Pixel.ZERO.

Example:
    from cellvideo.render import BoxFilterDownscaler
    from cellvideo.models import Size

    downscaler = BoxFilterDownscaler(Size(1920, 1080), Size(120, 80))
    small = downscaler.downscale(frame)
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from cellvideo.models.frame import Frame, Pixel
from cellvideo.models.geometry import Region, Size


logger = logging.getLogger(__name__)


def compute_scale_factor(source: Size, target: Size) -> float:
    """
    Select the shared source-pixels-per-cell factor.

    Args:
        source: Source frame size
        target: Target cell grid size

    Returns:
        Strictly positive scale factor

    Raises:
        ValueError: If either size has a non-positive dimension
    """
    source.validate_positive("source")
    target.validate_positive("target")

    if source.is_square:
        return source.width / min(target.width, target.height)
    elif source.is_landscape:
        return source.width / target.width
    else:
        return source.height / target.height


def source_region(x: int, y: int, factor: float) -> Region:
    """Unclamped source window sampled by target cell (x, y)."""
    origin_x = math.floor(x * factor)
    origin_y = math.floor(y * factor)

    return Region(
        origin_x,
        origin_y,
        math.ceil(origin_x + factor),
        math.ceil(origin_y + factor),
    )


def box_filter(frame: Frame, region: Region) -> Pixel:
    """
    Average every pixel of a region.

    Args:
        frame: Frame to sample
        region: Window to average, clamped to the frame bounds first

    Returns:
        Channel-wise floor mean, or Pixel.ZERO for an empty window
    """
    clamped = region.intersect(frame.bounds)
    count = clamped.area

    if count == 0:
        return Pixel.ZERO

    window = frame.pixels[clamped.min_y:clamped.max_y, clamped.min_x:clamped.max_x]
    sums = window.reshape(-1, 3).sum(axis=0, dtype=np.int64)
    r, g, b = (sums // count).tolist()
    return Pixel(r, g, b)


def _axis_bounds(count: int, factor: float, limit: int) -> Tuple[np.ndarray, np.ndarray]:
    """Clamped [start, stop) source indices for each target index along one axis."""
    origins = np.floor(np.arange(count, dtype=np.float64) * factor)
    stops = np.ceil(origins + factor)

    starts = np.clip(origins, 0, limit).astype(np.intp)
    stops = np.clip(stops, 0, limit).astype(np.intp)
    return starts, np.maximum(stops, starts)


class BoxFilterDownscaler:
    """
    Session-scoped box-filter downscaler.

    The scale factor and every cell's sampling window are computed once
    at construction. Each frame is then reduced with an integral image,
    so per-frame cost is linear in the source pixel count.

    Attributes:
        source: Expected source frame size
        target: Output cell grid size
        factor: Shared scale factor
    """

    def __init__(self, source: Size, target: Size) -> None:
        """
        Initialize downscaler.

        Args:
            source: Source frame size (fixed for the session)
            target: Target grid size (fixed for the session)

        Raises:
            ValueError: If either size has a non-positive dimension
        """
        self.source = source
        self.target = target
        self.factor = compute_scale_factor(source, target)

        self._row_starts, self._row_stops = _axis_bounds(
            target.height, self.factor, source.height
        )
        self._col_starts, self._col_stops = _axis_bounds(
            target.width, self.factor, source.width
        )

        counts = np.outer(
            self._row_stops - self._row_starts,
            self._col_stops - self._col_starts,
        )
        self._divisors = np.maximum(counts, 1)[..., np.newaxis]

        # Row 0 and column 0 stay zero; the rest is rewritten every frame
        self._integral = np.zeros(
            (source.height + 1, source.width + 1, 3), dtype=np.int64
        )

        logger.info(
            f"BoxFilterDownscaler initialized: source={source}, "
            f"target={target}, factor={self.factor:.4f}"
        )

    def downscale(self, frame: Frame, out: Optional[Frame] = None) -> Frame:
        """
        Reduce one source frame to the target grid.

        Args:
            frame: Frame of exactly the configured source size
            out: Optional target-sized frame to overwrite in full

        Returns:
            The downscaled frame (``out`` when given)

        Raises:
            ValueError: If frame or out has an unexpected size
        """
        if frame.size != self.source:
            raise ValueError(
                f"Expected source frame {self.source}, got {frame.size}"
            )

        if out is None:
            out = Frame.blank(self.target.width, self.target.height)
        elif out.size != self.target:
            raise ValueError(
                f"Expected output frame {self.target}, got {out.size}"
            )

        integral = self._integral
        integral[1:, 1:] = frame.pixels.cumsum(axis=0, dtype=np.int64).cumsum(axis=1)

        y0 = self._row_starts[:, np.newaxis]
        y1 = self._row_stops[:, np.newaxis]
        x0 = self._col_starts[np.newaxis, :]
        x1 = self._col_stops[np.newaxis, :]

        sums = integral[y1, x1] - integral[y0, x1] - integral[y1, x0] + integral[y0, x0]

        # Empty windows sum to zero, so they come out as Pixel.ZERO
        np.copyto(out.pixels, sums // self._divisors, casting="unsafe")
        return out


def downscale(source: Frame, target_width: int, target_height: int) -> Frame:
    """
    One-shot downscale of a single frame.

    Prefer BoxFilterDownscaler for streams, which computes the sampling
    windows once instead of per call.
    """
    downscaler = BoxFilterDownscaler(source.size, Size(target_width, target_height))
    return downscaler.downscale(source)
