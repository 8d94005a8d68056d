"""
Frame Buffer Tests
==================

Tests for the single-slot handoff queue.
"""

import asyncio

import pytest

from cellvideo.stream import BufferClosedError, FrameBuffer


class TestFrameBuffer:
    """Tests for FrameBuffer semantics."""

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            FrameBuffer(maxsize=0)

    @pytest.mark.asyncio
    async def test_fifo_order(self):
        buffer = FrameBuffer(maxsize=3)
        for data in (b"a", b"b", b"c"):
            await buffer.put(data)

        assert [await buffer.get() for _ in range(3)] == [b"a", b"b", b"c"]

    @pytest.mark.asyncio
    async def test_put_blocks_while_slot_full(self):
        buffer = FrameBuffer()
        await buffer.put(b"first")

        second = asyncio.create_task(buffer.put(b"second"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert not second.done()
        assert buffer.size == 1

        assert await buffer.get() == b"first"
        await asyncio.wait_for(second, timeout=1.0)
        assert await buffer.get() == b"second"

    @pytest.mark.asyncio
    async def test_get_blocks_until_frame_arrives(self):
        buffer = FrameBuffer()
        getter = asyncio.create_task(buffer.get())
        await asyncio.sleep(0)
        assert not getter.done()

        await buffer.put(b"frame")
        assert await asyncio.wait_for(getter, timeout=1.0) == b"frame"

    @pytest.mark.asyncio
    async def test_close_delivers_pending_then_none(self):
        buffer = FrameBuffer()
        await buffer.put(b"last")
        await buffer.close()

        assert await buffer.get() == b"last"
        assert await buffer.get() is None
        assert await buffer.get() is None

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_consumer(self):
        buffer = FrameBuffer()
        getter = asyncio.create_task(buffer.get())
        await asyncio.sleep(0)

        await buffer.close()
        assert await asyncio.wait_for(getter, timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_put_after_close_raises(self):
        buffer = FrameBuffer()
        await buffer.close()
        await buffer.close()

        with pytest.raises(BufferClosedError):
            await buffer.put(b"late")

    @pytest.mark.asyncio
    async def test_metrics(self):
        buffer = FrameBuffer()
        await buffer.put(b"x")
        await buffer.get()
        await buffer.close()

        assert buffer.metrics() == {
            "size": 0,
            "maxsize": 1,
            "total_put": 1,
            "total_get": 1,
            "closed": True,
        }
