"""Tests for the stream throttler."""

import asyncio
import math

import pytest

from ledflow_mcp.engine.throttle import EditPhase, StreamThrottler


class Recorder:
    """Dispatch target that records (control_id, payload) pairs."""

    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    async def __call__(self, control_id, payload):
        if self.fail:
            raise ConnectionError("device went away")
        self.calls.append((control_id, payload))


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_drag_is_bounded_and_ends_on_final_payload(self):
        recorder = Recorder()
        throttler = StreamThrottler(recorder)
        loop = asyncio.get_running_loop()
        started = loop.time()
        for i in range(50):
            await throttler.report("slider", EditPhase.CHANGED, i)
            await asyncio.sleep(0.01)
        ok = await throttler.report("slider", EditPhase.ENDED, "final")
        elapsed_ms = (loop.time() - started) * 1000

        assert ok is True
        assert len(recorder.calls) <= math.ceil(elapsed_ms / 60) + 1
        assert recorder.calls[-1] == ("slider", "final")
        assert throttler.pending() == []

    @pytest.mark.asyncio
    async def test_quiet_control_flushes_after_window(self):
        recorder = Recorder()
        throttler = StreamThrottler(recorder, single_window=0.02)
        assert await throttler.report("slider", EditPhase.CHANGED, 7) is False
        assert recorder.calls == []
        await asyncio.sleep(0.08)
        assert recorder.calls == [("slider", 7)]
        assert throttler.pending() == []

    @pytest.mark.asyncio
    async def test_newer_change_replaces_pending(self):
        recorder = Recorder()
        throttler = StreamThrottler(recorder, single_window=0.02)
        await throttler.report("slider", EditPhase.CHANGED, 1)
        await throttler.report("slider", EditPhase.CHANGED, 2)
        await asyncio.sleep(0.08)
        assert recorder.calls == [("slider", 2)]

    @pytest.mark.asyncio
    async def test_dual_window_is_longer(self):
        recorder = Recorder()
        throttler = StreamThrottler(recorder, single_window=0.01, dual_window=0.2)
        assert throttler.window_for(True) == 0.2
        await throttler.report("ab", EditPhase.CHANGED, "x", dual=True)
        await asyncio.sleep(0.05)
        assert recorder.calls == []
        await throttler.aclose()

    @pytest.mark.asyncio
    async def test_controls_are_independent(self):
        recorder = Recorder()
        throttler = StreamThrottler(recorder, single_window=0.02)
        await throttler.report("a", EditPhase.CHANGED, 1)
        await throttler.report("b", EditPhase.CHANGED, 2)
        await asyncio.sleep(0.08)
        assert sorted(recorder.calls) == [("a", 1), ("b", 2)]


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_prefix_drops_matching(self):
        recorder = Recorder()
        throttler = StreamThrottler(recorder, single_window=0.05)
        await throttler.report("desk:0:gradient", EditPhase.CHANGED, 1)
        await throttler.report("desk:0:brightness", EditPhase.CHANGED, 2)
        await throttler.report("shelf:0:gradient", EditPhase.CHANGED, 3)
        assert throttler.cancel_prefix("desk:") == 2
        assert throttler.pending() == ["shelf:0:gradient"]
        await asyncio.sleep(0.12)
        assert recorder.calls == [("shelf:0:gradient", 3)]

    @pytest.mark.asyncio
    async def test_cancel_unknown_control(self):
        throttler = StreamThrottler(Recorder())
        assert throttler.cancel("nothing") is False

    @pytest.mark.asyncio
    async def test_aclose_drops_everything(self):
        recorder = Recorder()
        throttler = StreamThrottler(recorder, single_window=0.02)
        await throttler.report("a", EditPhase.CHANGED, 1)
        await throttler.aclose()
        await asyncio.sleep(0.05)
        assert recorder.calls == []
        assert throttler.pending() == []


class TestFailures:

    @pytest.mark.asyncio
    async def test_failed_end_write_returns_false(self):
        recorder = Recorder(fail=True)
        throttler = StreamThrottler(recorder)
        assert await throttler.report("slider", EditPhase.ENDED, 1) is False
        assert throttler.failed == 1
        assert throttler.dispatched == 0

    @pytest.mark.asyncio
    async def test_failed_trailing_write_is_counted(self):
        recorder = Recorder(fail=True)
        throttler = StreamThrottler(recorder, single_window=0.01)
        await throttler.report("slider", EditPhase.CHANGED, 1)
        await asyncio.sleep(0.05)
        assert throttler.failed == 1
        assert throttler.pending() == []
