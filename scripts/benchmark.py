#!/usr/bin/env python3
"""
Pipeline Throughput Benchmark
=============================

Standalone script measuring how many frames per second the rendering
pipeline sustains, without a terminal or external video tools.

This script:
    1. Feeds MockFrameSource frames of the chosen source size
    2. Renders them into an in-memory sink
    3. Reports throughput and output size

Usage:
    python scripts/benchmark.py --frames 300
    python scripts/benchmark.py --source-width 1920 --source-height 1080
"""

import argparse
import asyncio
import io
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from cellvideo.models import Size
from cellvideo.pipeline import Pipeline
from cellvideo.stream import MockFrameSource


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


class _CountingSink(io.TextIOBase):
    """Text sink that only counts characters."""

    def __init__(self) -> None:
        self.chars = 0

    def write(self, s: str) -> int:
        self.chars += len(s)
        return len(s)


async def run_benchmark(source_size: Size, target_size: Size, frames: int) -> dict:
    """
    Run the benchmark.

    Args:
        source_size: Size of generated source frames
        target_size: Terminal pixel grid
        frames: Number of frames to render

    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info("Pipeline Throughput Benchmark")
    logger.info("=" * 60)
    logger.info(f"Source size: {source_size}")
    logger.info(f"Target size: {target_size}")
    logger.info(f"Frames: {frames}")
    logger.info("=" * 60)

    source = MockFrameSource(size=source_size, frame_count=frames)
    sink = _CountingSink()
    pipeline = Pipeline(source_size, target_size, output=sink)

    start_time = time.perf_counter()
    rendered = await pipeline.run(source)
    total_time = time.perf_counter() - start_time

    avg_fps = rendered / total_time if total_time > 0 else 0

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.2f} seconds")
    logger.info(f"Frames rendered: {rendered}")
    logger.info(f"Average FPS: {avg_fps:.1f}")
    logger.info(f"Scale factor: {pipeline.scale_factor:.4f}")
    logger.info(f"Characters written: {sink.chars}")
    logger.info("=" * 60)

    return {
        "duration": total_time,
        "frames_rendered": rendered,
        "avg_fps": avg_fps,
        "chars_written": sink.chars,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Throughput benchmark for the cellvideo rendering pipeline"
    )
    parser.add_argument("--frames", type=int, default=300, help="Frames to render (default: 300)")
    parser.add_argument("--source-width", type=int, default=1280, help="Source width (default: 1280)")
    parser.add_argument("--source-height", type=int, default=720, help="Source height (default: 720)")
    parser.add_argument("--width", type=int, default=120, help="Target width (default: 120)")
    parser.add_argument("--height", type=int, default=80, help="Target height (default: 80)")

    args = parser.parse_args()

    result = asyncio.run(run_benchmark(
        source_size=Size(args.source_width, args.source_height),
        target_size=Size(args.width, args.height),
        frames=args.frames,
    ))

    sys.exit(0 if result["frames_rendered"] == args.frames else 1)


if __name__ == "__main__":
    main()
