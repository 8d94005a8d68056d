"""
Pipeline Tests
==============

Tests for the orchestrator loop, its state machine and termination.
"""

import asyncio
import io

import pytest

from cellvideo.models import Frame, Pixel, Size
from cellvideo.pipeline import Pipeline, PipelineState
from cellvideo.render import CURSOR_HOME
from cellvideo.stream import FrameBuffer, FrameProducer, SourceUnavailableError


SOURCE = Size(4, 4)
TARGET = Size(2, 2)


def _raw_frames(*colors):
    return [Frame.filled(SOURCE.width, SOURCE.height, c).to_raw() for c in colors]


class TestPipelineConstruction:
    """Precondition checks happen before streaming."""

    def test_rejects_odd_target_height(self):
        with pytest.raises(ValueError):
            Pipeline(SOURCE, Size(2, 3), output=io.StringIO())

    def test_rejects_non_positive_sizes(self):
        with pytest.raises(ValueError):
            Pipeline(Size(0, 4), TARGET, output=io.StringIO())
        with pytest.raises(ValueError):
            Pipeline(SOURCE, Size(0, 2), output=io.StringIO())

    def test_initial_state(self):
        pipeline = Pipeline(SOURCE, TARGET, output=io.StringIO())
        assert pipeline.state == PipelineState.AWAITING_FRAME
        assert pipeline.scale_factor == pytest.approx(2.0)


class TestPipelineRun:
    """End-to-end runs against in-memory sources."""

    @pytest.mark.asyncio
    async def test_renders_every_frame_then_closes(self, list_source, red):
        output = io.StringIO()
        source = list_source(SOURCE, _raw_frames(red, red, red))
        pipeline = Pipeline(SOURCE, TARGET, output=output)

        rendered = await pipeline.run(source)

        assert rendered == 3
        assert output.getvalue().count(CURSOR_HOME) == 3
        assert pipeline.state == PipelineState.CLOSED
        assert source.closed

    @pytest.mark.asyncio
    async def test_metrics_count_written_characters(self, list_source, red):
        output = io.StringIO()
        pipeline = Pipeline(SOURCE, TARGET, output=output)

        await pipeline.run(list_source(SOURCE, _raw_frames(red, red)))

        metrics = pipeline.metrics.to_dict()
        assert metrics["frames_rendered"] == 2
        assert metrics["chars_written"] == len(output.getvalue())
        assert metrics["malformed_frames"] == 0

    @pytest.mark.asyncio
    async def test_block_layout(self, list_source, red):
        output = io.StringIO()
        pipeline = Pipeline(SOURCE, TARGET, output=output)

        await pipeline.run(list_source(SOURCE, _raw_frames(red)))

        block = output.getvalue()
        assert block.startswith(CURSOR_HOME)
        lines = block[len(CURSOR_HOME):].split("\n")
        assert len(lines) == TARGET.height // 2 + 1
        assert lines[0].count("▀") == TARGET.width

    @pytest.mark.asyncio
    async def test_frames_rendered_in_order(self, list_source):
        colors = [Pixel(10 * i, 0, 255 - 10 * i) for i in range(6)]
        output = io.StringIO()
        pipeline = Pipeline(SOURCE, TARGET, output=output)

        await pipeline.run(list_source(SOURCE, _raw_frames(*colors)))

        blocks = output.getvalue().split(CURSOR_HOME)[1:]
        reference = Pipeline(SOURCE, TARGET, output=io.StringIO())
        expected = [
            reference.render_frame(Frame.filled(SOURCE.width, SOURCE.height, c))
            for c in colors
        ]
        assert blocks == expected

    @pytest.mark.asyncio
    async def test_empty_source(self, list_source):
        output = io.StringIO()
        pipeline = Pipeline(SOURCE, TARGET, output=output)

        assert await pipeline.run(list_source(SOURCE, [])) == 0
        assert output.getvalue() == ""

    @pytest.mark.asyncio
    async def test_short_frame_ends_stream(self, list_source, red):
        frames = _raw_frames(red, red)
        frames.insert(1, frames[0][:-3])
        pipeline = Pipeline(SOURCE, TARGET, output=io.StringIO())
        source = list_source(SOURCE, frames)

        rendered = await pipeline.run(source)

        assert rendered == 1
        assert pipeline.metrics.malformed_frames == 1
        assert pipeline.state == PipelineState.CLOSED
        assert source.closed

    @pytest.mark.asyncio
    async def test_source_unavailable_is_raised(self, list_source):
        output = io.StringIO()
        pipeline = Pipeline(SOURCE, TARGET, output=output)
        source = list_source(SOURCE, [], fail_on_start=True)

        with pytest.raises(SourceUnavailableError):
            await pipeline.run(source)

        assert output.getvalue() == ""
        assert source.closed

    @pytest.mark.asyncio
    async def test_unavailable_survives_slow_source_close(self, list_source):
        class SlowClosingSource(list_source):
            async def close(self):
                await asyncio.sleep(0.05)
                self.closed = True

        pipeline = Pipeline(SOURCE, TARGET, output=io.StringIO())
        source = SlowClosingSource(SOURCE, [], unavailable_after=0)

        with pytest.raises(SourceUnavailableError):
            await pipeline.run(source)

        assert source.closed
        assert pipeline.state == PipelineState.CLOSED

    @pytest.mark.asyncio
    async def test_mid_stream_failure_ends_gracefully(self, list_source, red):
        pipeline = Pipeline(SOURCE, TARGET, output=io.StringIO())
        source = list_source(SOURCE, _raw_frames(red, red, red), error_after=2)

        assert await pipeline.run(source) == 2

    @pytest.mark.asyncio
    async def test_stop_interrupts_waiting_pipeline(self, list_source, red):
        pipeline = Pipeline(SOURCE, TARGET, output=io.StringIO())
        source = list_source(SOURCE, _raw_frames(red, red), hang_after=1)

        asyncio.get_running_loop().call_later(0.05, pipeline.stop)
        rendered = await asyncio.wait_for(pipeline.run(source), timeout=5.0)

        assert rendered == 1
        assert pipeline.state == PipelineState.CLOSED
        assert source.closed

    @pytest.mark.asyncio
    async def test_cannot_run_twice(self, list_source):
        pipeline = Pipeline(SOURCE, TARGET, output=io.StringIO())
        await pipeline.run(list_source(SOURCE, []))

        with pytest.raises(RuntimeError):
            await pipeline.run(list_source(SOURCE, []))


class TestFrameProducer:
    """Tests for the producer task in isolation."""

    @pytest.mark.asyncio
    async def test_moves_frames_and_closes_buffer(self, list_source, red):
        frames = _raw_frames(red, red)
        source = list_source(SOURCE, frames)
        buffer = FrameBuffer(maxsize=len(frames))
        producer = FrameProducer(source, buffer)

        await producer.run()

        assert buffer.closed
        assert await buffer.get() == frames[0]
        assert await buffer.get() == frames[1]
        assert await buffer.get() is None
        assert producer.metrics.frames_produced == 2
        assert producer.metrics.ended_normally
        assert source.closed

    @pytest.mark.asyncio
    async def test_producer_waits_for_consumer(self, list_source, red):
        source = list_source(SOURCE, _raw_frames(red, red, red))
        buffer = FrameBuffer()
        producer = FrameProducer(source, buffer)

        task = asyncio.create_task(producer.run())
        for _ in range(10):
            await asyncio.sleep(0)

        # One frame queued, the producer is parked on the second
        assert producer.metrics.frames_produced == 1
        assert not task.done()

        while await buffer.get() is not None:
            pass
        await asyncio.wait_for(task, timeout=1.0)
        assert producer.metrics.frames_produced == 3

    @pytest.mark.asyncio
    async def test_error_is_counted(self, list_source, red):
        source = list_source(SOURCE, _raw_frames(red), error_after=0)
        buffer = FrameBuffer()
        producer = FrameProducer(source, buffer)

        await producer.run()

        assert producer.metrics.stream_errors == 1
        assert not producer.metrics.ended_normally
        assert await buffer.get() is None

    @pytest.mark.asyncio
    async def test_unavailable_before_first_frame_propagates(self, list_source, red):
        source = list_source(SOURCE, _raw_frames(red), unavailable_after=0)
        buffer = FrameBuffer()
        producer = FrameProducer(source, buffer)

        with pytest.raises(SourceUnavailableError):
            await producer.run()

        assert buffer.closed
        assert source.closed

    @pytest.mark.asyncio
    async def test_unavailable_after_first_frame_ends_stream(self, list_source, red):
        frames = _raw_frames(red, red)
        source = list_source(SOURCE, frames, unavailable_after=1)
        buffer = FrameBuffer(maxsize=len(frames))
        producer = FrameProducer(source, buffer)

        await producer.run()

        assert await buffer.get() == frames[0]
        assert await buffer.get() is None
        assert producer.metrics.frames_produced == 1
        assert producer.metrics.stream_errors == 1
