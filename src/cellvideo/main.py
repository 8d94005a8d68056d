"""
cellvideo Main Application
==========================

Command-line entry point for the terminal video player.

Usage:
    cellvideo --path video.mp4
    cellvideo --url https://www.youtube.com/watch?v=...
    cellvideo --backend mock --width 80 --height 48

Exit Codes:
    0 - stream ended (or was stopped)
    1 - incorrect usage or source unavailable
    2 - invalid arguments or configuration
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional, TextIO

from pydantic import ValidationError

from cellvideo import __version__
from cellvideo.config import Settings, load_config, setup_logging
from cellvideo.models.geometry import Size
from cellvideo.pipeline import Pipeline
from cellvideo.render.encoder import CLEAR_SCREEN, CURSOR_HOME
from cellvideo.stream import (
    FfmpegFileSource,
    FfmpegUrlSource,
    FrameSource,
    MockFrameSource,
    OpenCVFileSource,
    SourceUnavailableError,
)


logger = logging.getLogger(__name__)


class UsageError(Exception):
    """Raised when no usable source was selected."""
    pass


# =============================================================================
# Frame Source Factory
# =============================================================================

def create_frame_source(settings: Settings) -> FrameSource:
    """
    Create a frame source based on config.

    A URL is always fetched through the downloader + ffmpeg pipeline;
    a path is decoded by the configured backend.

    Raises:
        UsageError: If neither a path nor a URL is configured
    """
    source = settings.source
    target = Size(settings.render.width, settings.render.height)

    if source.backend == "mock":
        logger.info("Using MockFrameSource")
        return MockFrameSource(size=target, frame_count=source.mock_frame_count)

    if source.path:
        if source.backend == "opencv":
            logger.info(f"Using OpenCVFileSource: {source.path}")
            return OpenCVFileSource(source.path)

        logger.info(f"Using FfmpegFileSource: {source.path}")
        return FfmpegFileSource(
            source.path,
            ffmpeg=source.ffmpeg_binary,
            ffprobe=source.ffprobe_binary,
        )

    if source.url:
        logger.info(f"Using FfmpegUrlSource: {source.url}")
        return FfmpegUrlSource(
            source.url,
            size=target,
            ffmpeg=source.ffmpeg_binary,
            downloader=source.downloader_binary,
            downloader_format=source.downloader_format,
        )

    raise UsageError("Either a path or a url must be given")


# =============================================================================
# Session
# =============================================================================

async def play(settings: Settings, output: Optional[TextIO] = None) -> int:
    """
    Run one playback session.

    Args:
        settings: Loaded settings
        output: Destination stream (defaults to sys.stdout)

    Returns:
        Number of frames rendered

    Raises:
        UsageError: If no source is configured
        SourceUnavailableError: If probing or starting the source fails
    """
    output = output if output is not None else sys.stdout
    source = create_frame_source(settings)

    source_size = await source.probe_dimensions()
    pipeline = Pipeline(
        source_size=source_size,
        target_size=Size(settings.render.width, settings.render.height),
        output=output,
    )

    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, pipeline.stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Signal handlers unavailable for {sig!r}")

    if settings.output.clear_screen:
        output.write(CLEAR_SCREEN + CURSOR_HOME)
        output.flush()

    try:
        frames = await pipeline.run(source)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)

    logger.info(f"Playback finished: {pipeline.metrics.to_dict()}")
    return frames


# =============================================================================
# Command Line
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cellvideo",
        description="Play a video as truecolor half-block text in the terminal",
    )
    parser.add_argument("--path", help="path to video file")
    parser.add_argument("--url", help="url of a video source")
    parser.add_argument("--width", type=int, help="target grid width in pixels")
    parser.add_argument("--height", type=int, help="target grid height in pixels (even)")
    parser.add_argument(
        "--backend",
        choices=["ffmpeg", "opencv", "mock"],
        help="frame acquisition backend",
    )
    parser.add_argument("--config", help="path to a YAML config file")
    parser.add_argument("--log-level", help="log level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument(
        "--no-clear",
        action="store_true",
        help="do not clear the screen before playback",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {
        "render": {"width": args.width, "height": args.height},
        "source": {"backend": args.backend, "path": args.path, "url": args.url},
        "output": {"clear_screen": False if args.no_clear else None},
        "logging": {"level": args.log_level},
    }

    try:
        settings = load_config(args.config, overrides=overrides)
    except (ValidationError, FileNotFoundError) as e:
        print(f"cellvideo: invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(settings)

    # The half-block glyph is outside most legacy console code pages
    if sys.stdout.isatty() and hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8")

    try:
        asyncio.run(play(settings))
    except UsageError as e:
        logger.error(f"Incorrect usage: {e}")
        parser.print_usage(sys.stderr)
        return 1
    except SourceUnavailableError as e:
        logger.error(f"Source unavailable: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
