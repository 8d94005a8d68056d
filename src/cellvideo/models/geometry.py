"""
Geometry Models
===============

Integer pixel-grid geometry shared by the downscaler and the pipeline.

Supported Geometries:
    - Size: Width/height pair for a frame or a terminal cell grid
    - Region: Half-open axis-aligned rectangle [min, max) used as an
      averaging window

Note:
    All coordinates are in IMAGE SPACE (pixels), origin at the top-left.
    X increases rightward, Y increases downward.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Size:
    """
    Width and height of a pixel grid.

    Attributes:
        width: Horizontal extent in pixels
        height: Vertical extent in pixels
    """

    width: int
    height: int

    @property
    def is_square(self) -> bool:
        return self.width == self.height

    @property
    def is_landscape(self) -> bool:
        """Wider than tall."""
        return self.width > self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def validate_positive(self, name: str = "size") -> None:
        """
        Raise if either dimension is not strictly positive.

        Args:
            name: Label used in the error message

        Raises:
            ValueError: If width or height is <= 0
        """
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"{name} must have positive dimensions, got {self.width}x{self.height}"
            )

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True, slots=True)
class Region:
    """
    Axis-aligned rectangle covering [min_x, max_x) x [min_y, max_y).

    A Region may extend past the bounds of a frame; it must be clamped
    with intersect() before sampling. Empty regions always report zero
    area, never a negative one.

    Attributes:
        min_x: Left edge (inclusive)
        min_y: Top edge (inclusive)
        max_x: Right edge (exclusive)
        max_y: Bottom edge (exclusive)
    """

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @classmethod
    def bounds(cls, size: Size) -> "Region":
        """Region covering a whole grid of the given size."""
        return cls(0, 0, size.width, size.height)

    @property
    def width(self) -> int:
        return max(0, self.max_x - self.min_x)

    @property
    def height(self) -> int:
        return max(0, self.max_y - self.min_y)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.area == 0

    def intersect(self, other: "Region") -> "Region":
        """
        Clamp this region against another.

        Args:
            other: Region to intersect with (usually frame bounds)

        Returns:
            The overlapping region. When the two do not overlap the
            result is an empty region with zero area.
        """
        min_x = max(self.min_x, other.min_x)
        min_y = max(self.min_y, other.min_y)
        max_x = min(self.max_x, other.max_x)
        max_y = min(self.max_y, other.max_y)

        if max_x <= min_x or max_y <= min_y:
            return Region(min_x, min_y, min_x, min_y)

        return Region(min_x, min_y, max_x, max_y)
