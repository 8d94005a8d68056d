"""
FFmpeg Frame Sources
====================

Frame acquisition through external ffprobe / ffmpeg processes.

This module provides:
    - probe_video_size: Source dimensions via ffprobe
    - FfmpegFileSource: Decode a local video file to raw RGB0 frames
    - FfmpegUrlSource: Download a network video and decode it on the fly

Pipelines:
    file:  ffmpeg -i PATH ... -pix_fmt rgb0 -f image2pipe -  -> frames
    url:   youtube-dl -o - URL -f worst | ffmpeg -i pipe:0 -s WxH ... -  -> frames

Design Rules:
    - Every process is spawned with asyncio, never blocking the event loop
    - A short trailing read ends the stream, it is never surfaced
    - A process failing before the first frame is SourceUnavailableError
    - close() terminates and reaps every child process
"""

import asyncio
import logging
import os
import re
from typing import List, Optional

from cellvideo.models.frame import raw_frame_length
from cellvideo.models.geometry import Size
from cellvideo.stream.source import SourceUnavailableError


logger = logging.getLogger(__name__)


PROBE_PATTERN = re.compile(r"width=(\d+)\|height=(\d+)")


def ffprobe_args(path: str, ffprobe: str = "ffprobe") -> List[str]:
    """Command line printing the video stream's parameters in compact form."""
    return [
        ffprobe,
        "-i", path,
        "-show_streams",
        "-select_streams", "v",
        "-loglevel", "quiet",
        "-output_format", "compact",
    ]


def ffmpeg_decode_args(
    input_path: str,
    ffmpeg: str = "ffmpeg",
    size: Optional[Size] = None,
) -> List[str]:
    """
    Command line decoding a video to raw RGB0 frames on stdout.

    Args:
        input_path: File path, or "pipe:0" to read stdin
        ffmpeg: ffmpeg executable
        size: Optional output size (ffmpeg scales to it)
    """
    args = [ffmpeg, "-i", input_path]
    if size is not None:
        args += ["-s", f"{size.width}x{size.height}"]
    args += [
        "-loglevel", "quiet",
        "-pix_fmt", "rgb0",
        "-vcodec", "rawvideo",
        "-f", "image2pipe",
        "-",
    ]
    return args


def downloader_args(url: str, downloader: str = "youtube-dl", fmt: str = "worst") -> List[str]:
    """Command line streaming a network video to stdout."""
    return [downloader, "-o", "-", url, "-f", fmt]


def parse_probe_output(output: str) -> Size:
    """
    Extract the video size from compact ffprobe output.

    Args:
        output: Text printed by ffprobe

    Returns:
        Size of the first video stream

    Raises:
        SourceUnavailableError: If no positive width/height is present
    """
    match = PROBE_PATTERN.search(output)
    if match is None:
        raise SourceUnavailableError("ffprobe reported no video stream dimensions")

    size = Size(int(match.group(1)), int(match.group(2)))
    if size.width <= 0 or size.height <= 0:
        raise SourceUnavailableError(f"ffprobe reported invalid dimensions {size}")

    return size


async def probe_video_size(path: str, ffprobe: str = "ffprobe") -> Size:
    """
    Probe a video file's frame size with ffprobe.

    Raises:
        SourceUnavailableError: If ffprobe cannot run or finds no video
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *ffprobe_args(path, ffprobe),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        raise SourceUnavailableError(f"Failed to run {ffprobe}: {e}") from e

    stdout, _ = await proc.communicate()
    if proc.returncode != 0:
        raise SourceUnavailableError(
            f"{ffprobe} exited with status {proc.returncode} for {path}"
        )

    size = parse_probe_output(stdout.decode("utf-8", errors="replace"))
    logger.info(f"Probed {path}: {size}")
    return size


class _PipedFrameSource:
    """Shared frame reading and process cleanup for ffmpeg-backed sources."""

    def __init__(self) -> None:
        self._size: Optional[Size] = None
        self._processes: List[asyncio.subprocess.Process] = []
        self._stdout: Optional[asyncio.StreamReader] = None
        self._frames_read = 0

    async def next_frame(self) -> Optional[bytes]:
        """
        Read the next whole frame from the decoder's stdout.

        Raises:
            SourceUnavailableError: If the stream ends before the first
                frame and a process in the pipeline exited with an error
        """
        if self._stdout is None or self._size is None:
            raise RuntimeError("Frame source has not been started")

        try:
            data = await self._stdout.readexactly(
                raw_frame_length(self._size.width, self._size.height)
            )
        except asyncio.IncompleteReadError as e:
            if self._frames_read == 0:
                await self._raise_if_failed()
            if e.partial:
                logger.info(f"Discarding truncated trailing frame ({len(e.partial)} bytes)")
            return None

        self._frames_read += 1
        return data

    async def _raise_if_failed(self) -> None:
        if not self._processes:
            return

        # The decoder closed stdout, so it has exited or is about to
        await self._processes[-1].wait()

        failed = [
            f"{proc.pid} (status {proc.returncode})"
            for proc in self._processes
            if proc.returncode not in (None, 0)
        ]
        if failed:
            raise SourceUnavailableError(
                f"Source produced no frames; process exited with an error: {', '.join(failed)}"
            )

    async def close(self) -> None:
        # Terminate downstream processes before upstream ones
        for proc in reversed(self._processes):
            if proc.returncode is None:
                try:
                    proc.terminate()
                except ProcessLookupError:
                    pass
            returncode = await proc.wait()
            logger.debug(f"Process {proc.pid} exited with status {returncode}")

        self._processes.clear()
        self._stdout = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def start(self) -> None:
        raise NotImplementedError


class FfmpegFileSource(_PipedFrameSource):
    """
    Local video file decoded by ffmpeg at its native resolution.

    Attributes:
        path: Video file path
        ffmpeg: ffmpeg executable
        ffprobe: ffprobe executable
    """

    def __init__(self, path: str, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
        super().__init__()
        self.path = path
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe

    async def probe_dimensions(self) -> Size:
        if self._size is None:
            self._size = await probe_video_size(self.path, self.ffprobe)
        return self._size

    async def start(self) -> None:
        await self.probe_dimensions()

        try:
            proc = await asyncio.create_subprocess_exec(
                *ffmpeg_decode_args(self.path, self.ffmpeg),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise SourceUnavailableError(f"Failed to start {self.ffmpeg}: {e}") from e

        self._processes.append(proc)
        self._stdout = proc.stdout
        logger.info(f"Decoding {self.path} with {self.ffmpeg} (pid={proc.pid})")


class FfmpegUrlSource(_PipedFrameSource):
    """
    Network video fetched by a downloader and scaled by ffmpeg.

    No probing happens: ffmpeg scales the stream to the configured size,
    which is also reported by probe_dimensions().

    Attributes:
        url: Video page or media URL
        size: Frame size ffmpeg scales to
        downloader: youtube-dl compatible executable
        downloader_format: Format selector passed with -f
    """

    def __init__(
        self,
        url: str,
        size: Size,
        ffmpeg: str = "ffmpeg",
        downloader: str = "youtube-dl",
        downloader_format: str = "worst",
    ) -> None:
        super().__init__()
        self.url = url
        self.size = size
        self.ffmpeg = ffmpeg
        self.downloader = downloader
        self.downloader_format = downloader_format

    async def probe_dimensions(self) -> Size:
        self._size = self.size
        return self.size

    async def start(self) -> None:
        await self.probe_dimensions()

        read_fd, write_fd = os.pipe()
        try:
            fetch = await asyncio.create_subprocess_exec(
                *downloader_args(self.url, self.downloader, self.downloader_format),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=write_fd,
                stderr=asyncio.subprocess.DEVNULL,
            )
            self._processes.append(fetch)

            decode = await asyncio.create_subprocess_exec(
                *ffmpeg_decode_args("pipe:0", self.ffmpeg, self.size),
                stdin=read_fd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            self._processes.append(decode)
        except OSError as e:
            await self.close()
            raise SourceUnavailableError(f"Failed to start URL pipeline: {e}") from e
        finally:
            # Children hold their own copies of the pipe ends
            os.close(read_fd)
            os.close(write_fd)

        self._stdout = decode.stdout
        logger.info(
            f"Streaming {self.url} via {self.downloader} (pid={fetch.pid}) "
            f"-> {self.ffmpeg} (pid={decode.pid}) at {self.size}"
        )
