"""
Pipeline Orchestrator
=====================

Drives the per-frame transformation from raw source bytes to terminal
text, consuming frames from a FrameProducer over a single-slot handoff.

State Machine:
    AWAITING_FRAME -> PROCESSING   frame received
    PROCESSING     -> EMITTING     downscale + encode finished
    EMITTING       -> AWAITING_FRAME  text block written
    any            -> CLOSED       end-of-stream, malformed frame or stop()

    CLOSED is terminal.

Failure Semantics:
    - A closed buffer ends the session normally
    - A malformed/short raw frame ends the session normally
    - SourceUnavailableError from the producer is re-raised to the caller
    - The producer is cancelled only while it can still deliver frames

Example:
    from cellvideo.pipeline import Pipeline
    from cellvideo.models import Size

    pipeline = Pipeline(source_size, Size(120, 80))
    frames = await pipeline.run(source)
"""

import asyncio
import logging
import sys
import time
from enum import Enum
from typing import Dict, FrozenSet, Optional, TextIO

from cellvideo.models.frame import Frame, RawFrameError
from cellvideo.models.geometry import Size
from cellvideo.render.downscale import BoxFilterDownscaler
from cellvideo.render.encoder import CURSOR_HOME, RowPairEncoder
from cellvideo.stream.buffer import FrameBuffer
from cellvideo.stream.source import FrameProducer, FrameSource


logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """
    Orchestrator states.

    Attributes:
        AWAITING_FRAME: Blocked on the handoff queue
        PROCESSING: Downscaling and encoding the current frame
        EMITTING: Writing the text block to the output stream
        CLOSED: Session finished, no further transitions
    """

    AWAITING_FRAME = "AWAITING_FRAME"
    PROCESSING = "PROCESSING"
    EMITTING = "EMITTING"
    CLOSED = "CLOSED"


_TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    PipelineState.AWAITING_FRAME: frozenset({PipelineState.PROCESSING, PipelineState.CLOSED}),
    PipelineState.PROCESSING: frozenset({PipelineState.EMITTING, PipelineState.CLOSED}),
    PipelineState.EMITTING: frozenset({PipelineState.AWAITING_FRAME, PipelineState.CLOSED}),
    PipelineState.CLOSED: frozenset(),
}


class PipelineMetrics:
    """Metrics for Pipeline observability."""

    __slots__ = (
        "frames_rendered",
        "chars_written",
        "malformed_frames",
        "last_render_seconds",
    )

    def __init__(self) -> None:
        self.frames_rendered: int = 0
        self.chars_written: int = 0
        self.malformed_frames: int = 0
        self.last_render_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_rendered": self.frames_rendered,
            "chars_written": self.chars_written,
            "malformed_frames": self.malformed_frames,
            "last_render_seconds": self.last_render_seconds,
        }


class Pipeline:
    """
    Consumer side of the frame stream.

    Owns the downscaler, the encoder and a reusable target-sized scratch
    frame that the downscaler overwrites in full on every frame.

    Attributes:
        source_size: Raw frame size (fixed for the session)
        target_size: Terminal pixel grid size (fixed for the session)
        output: Text stream the frames are written to
        metrics: Operational metrics
    """

    def __init__(
        self,
        source_size: Size,
        target_size: Size,
        output: Optional[TextIO] = None,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            source_size: Size reported by the frame source's probe
            target_size: Terminal pixel grid; height must be even
            output: Destination stream (defaults to sys.stdout)

        Raises:
            ValueError: If a size is non-positive or the target height is odd
        """
        source_size.validate_positive("source")
        target_size.validate_positive("target")
        if target_size.height % 2 != 0:
            raise ValueError(
                f"Target height must be even, got {target_size.height}"
            )

        self.source_size = source_size
        self.target_size = target_size
        self.output = output if output is not None else sys.stdout
        self.metrics = PipelineMetrics()

        self._downscaler = BoxFilterDownscaler(source_size, target_size)
        self._encoder = RowPairEncoder()
        self._scratch = Frame.blank(target_size.width, target_size.height)

        self._state = PipelineState.AWAITING_FRAME
        self._stop_event = asyncio.Event()
        self._started = False

    @property
    def state(self) -> PipelineState:
        """Current orchestrator state."""
        return self._state

    @property
    def scale_factor(self) -> float:
        return self._downscaler.factor

    def stop(self) -> None:
        """
        Request a stop.

        Safe to call from a signal handler on the event loop; the
        receive step observes it alongside the handoff queue.
        """
        logger.info("Pipeline stop requested")
        self._stop_event.set()

    def render_frame(self, frame: Frame) -> str:
        """Downscale and encode one source frame without writing it."""
        small = self._downscaler.downscale(frame, out=self._scratch)
        return self._encoder.encode(small)

    async def run(self, source: FrameSource) -> int:
        """
        Render every frame the source produces.

        Args:
            source: Frame source, not yet started

        Returns:
            Number of text blocks written

        Raises:
            SourceUnavailableError: If the source fails before its first frame
            RuntimeError: If the pipeline has already run
        """
        if self._started:
            raise RuntimeError("Pipeline has already run")
        self._started = True

        buffer = FrameBuffer(maxsize=1)
        producer = FrameProducer(source, buffer)
        producer_task = asyncio.create_task(producer.run(), name="frame_producer")

        logger.info(
            f"Pipeline starting: source={self.source_size}, "
            f"target={self.target_size}, factor={self.scale_factor:.4f}"
        )

        try:
            while True:
                data = await self._receive(buffer)
                if data is None:
                    break

                self._transition(PipelineState.PROCESSING)
                started = time.perf_counter()

                try:
                    frame = Frame.from_raw(
                        data, self.source_size.width, self.source_size.height
                    )
                except RawFrameError as e:
                    self.metrics.malformed_frames += 1
                    logger.warning(f"Malformed frame, ending stream: {e}")
                    break

                block = self.render_frame(frame)

                self._transition(PipelineState.EMITTING)
                self._emit(block)
                self.metrics.last_render_seconds = time.perf_counter() - started

                self._transition(PipelineState.AWAITING_FRAME)

        finally:
            self._transition(PipelineState.CLOSED)

            # A closed buffer means the producer is already exiting and may
            # still be reaping the source or carrying its error
            if not buffer.closed and not producer_task.done():
                producer_task.cancel()
            try:
                await producer_task
            except asyncio.CancelledError:
                pass

            logger.info(
                f"Pipeline closed: frames={self.metrics.frames_rendered}, "
                f"producer={producer.metrics.to_dict()}"
            )

        return self.metrics.frames_rendered

    async def _receive(self, buffer: FrameBuffer) -> Optional[bytes]:
        """Wait for the next frame or a stop request, whichever comes first."""
        if self._stop_event.is_set():
            return None

        get_task = asyncio.ensure_future(buffer.get())
        stop_task = asyncio.ensure_future(self._stop_event.wait())

        try:
            done, _ = await asyncio.wait(
                {get_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (get_task, stop_task):
                if not task.done():
                    task.cancel()

        if get_task in done and not self._stop_event.is_set():
            return get_task.result()

        return None

    def _emit(self, block: str) -> None:
        text = CURSOR_HOME + block
        self.output.write(text)
        self.output.flush()

        self.metrics.frames_rendered += 1
        self.metrics.chars_written += len(text)

    def _transition(self, new_state: PipelineState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            if new_state == self._state == PipelineState.CLOSED:
                return
            raise RuntimeError(
                f"Invalid pipeline transition {self._state.value} -> {new_state.value}"
            )

        logger.debug(f"Pipeline {self._state.value} -> {new_state.value}")
        self._state = new_state
