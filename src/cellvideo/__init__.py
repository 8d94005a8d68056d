"""
cellvideo
=========

Live video rendered as truecolor text in a character terminal.

Each raw RGB frame is box-filter downscaled to a fixed pixel grid, and
every vertically adjacent pixel pair becomes one upper-half-block glyph
(top pixel as foreground, bottom pixel as background).

Components:
    - models: Pixel, Frame, Size, Region
    - render: Box-filter downscaler and row-pair encoder
    - stream: Frame sources, producer task and single-slot handoff buffer
    - pipeline: Orchestrator tying the stream to the renderer

Example:
    from cellvideo.config import load_config
    from cellvideo.main import play

    settings = load_config(overrides={"source": {"path": "video.mp4"}})
    asyncio.run(play(settings))
"""

__version__ = "0.1.0"
__author__ = "cellvideo contributors"

__all__ = [
    "__version__",
]
