"""
Row-Pair Encoder
================

Turns a downscaled Frame into a block of 24-bit color escape text.

Each terminal cell shows two vertically stacked pixels: the upper-half
block glyph (U+2580) is drawn in the top pixel's color as foreground, and
the cell background carries the bottom pixel's color.

Escape Format:
    foreground:  ESC[38;2;r;g;bm <content> ESC[0m
    background:  ESC[48;2;r;g;bm <foreground sequence> ESC[0m

The background sequence wraps the foreground one so the inner reset
closes before the outer one.
"""

from enum import IntEnum
from typing import List

from cellvideo.models.frame import Frame, Pixel


ESC = "\u001b"
RESET = f"{ESC}[0m"
CURSOR_HOME = f"{ESC}[H"
CLEAR_SCREEN = f"{ESC}[2J"
UPPER_HALF_BLOCK = "\u2580"


class ColorParameter(IntEnum):
    """SGR parameter selecting which layer a truecolor sequence paints."""

    FOREGROUND = 38
    BACKGROUND = 48


def esc_sequence(parameter: ColorParameter, rgb: Pixel, content: str) -> str:
    """Wrap content in a truecolor SGR sequence followed by a reset."""
    return f"{ESC}[{int(parameter)};2;{rgb.r};{rgb.g};{rgb.b}m{content}{RESET}"


def stack_pixels(top: Pixel, bottom: Pixel) -> str:
    """Encode one vertically adjacent pixel pair as a single cell."""
    fg = esc_sequence(ColorParameter.FOREGROUND, top, UPPER_HALF_BLOCK)
    return esc_sequence(ColorParameter.BACKGROUND, bottom, fg)


# Same text as stack_pixels(top, bottom), bottom channels first
_CELL_TEMPLATE = (
    f"{ESC}[{int(ColorParameter.BACKGROUND)};2;{{}};{{}};{{}}m"
    f"{ESC}[{int(ColorParameter.FOREGROUND)};2;{{}};{{}};{{}}m"
    f"{UPPER_HALF_BLOCK}{RESET}{RESET}"
)


class RowPairEncoder:
    """
    Encoder for half-block frame rendering.

    Consumes rows two at a time and produces one text line per pair,
    each line terminated with a newline.

    Example:
        encoder = RowPairEncoder()
        block = encoder.encode(frame)
        sys.stdout.write(CURSOR_HOME + block)
    """

    def encode(self, frame: Frame) -> str:
        """
        Encode a frame.

        Args:
            frame: Frame with an even, non-zero height

        Returns:
            frame.height / 2 newline-terminated lines of frame.width cells

        Raises:
            ValueError: If the frame is empty or has an odd height
        """
        if frame.width == 0 or frame.height == 0:
            raise ValueError(f"Cannot encode empty frame {frame.size}")
        if frame.height % 2 != 0:
            raise ValueError(
                f"Frame height must be even for row-pair encoding, got {frame.height}"
            )

        tops = frame.pixels[0::2].tolist()
        bottoms = frame.pixels[1::2].tolist()

        lines: List[str] = []
        fmt = _CELL_TEMPLATE.format
        for top_row, bottom_row in zip(tops, bottoms):
            cells = [fmt(*bottom, *top) for top, bottom in zip(top_row, bottom_row)]
            cells.append("\n")
            lines.append("".join(cells))

        return "".join(lines)


def encode(frame: Frame) -> str:
    """Encode a frame with a default RowPairEncoder."""
    return RowPairEncoder().encode(frame)
