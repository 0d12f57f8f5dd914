"""
Transition engine - timed A->B gradient blends streamed to a segment.

Lifecycle per device:

    IDLE -> ARMED -> RUNNING -> COMPLETED | CANCELLED

A run of duration D at rate r (capped at max_writes_per_second) writes
n = max(2, ceil(D * r) + 1) frames spaced D / (n - 1) apart. Frame k uses
progress p = k / (n - 1): every LED is lerp(A[i], B[i], p) and brightness
is lerp(briA, briB, p). Frame 0 is exactly A at briA, frame n-1 exactly B
at briB.

cancel() on a running transition stops the ticks and then always writes A
back as a static frame; a finished run is left showing B.
Starting a new run on a busy device halts the old one without that revert,
since the new run's first frame follows immediately.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from ..color.gradient import blend_frames, sample_frame
from ..color.types import RGB, Gradient
from ..config import TransitionConfig
from ..device.errors import InvalidIntentError
from ..device.models import Device
from ..events import Channel
from .intent import ColorIntent, ColorMode
from .pipeline import ColorPipeline
from .throttle import StreamThrottler

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[int, int], None]


class TransitionState(Enum):
    IDLE = "idle"
    ARMED = "armed"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass
class TransitionSpec:
    """What to blend. gradient_b / brightness_b default to A."""
    gradient_a: Gradient
    brightness_a: int = 255
    gradient_b: Optional[Gradient] = None
    brightness_b: Optional[int] = None
    duration_seconds: float = 10.0
    frame_rate: float = 20.0
    segment_id: int = 0

    def __post_init__(self):
        if self.gradient_b is None:
            self.gradient_b = self.gradient_a.copy()
        if self.brightness_b is None:
            self.brightness_b = self.brightness_a
        self.brightness_a = max(0, min(255, int(self.brightness_a)))
        self.brightness_b = max(0, min(255, int(self.brightness_b)))


def frame_count(duration_seconds: float, frame_rate: float) -> int:
    return max(2, int(math.ceil(duration_seconds * frame_rate)) + 1)


@dataclass
class TransitionRun:
    """Bookkeeping for one run on one device."""
    device: Device
    spec: TransitionSpec
    total_frames: int
    interval: float
    frame_a: List[RGB]
    frame_b: List[RGB]
    state: TransitionState = TransitionState.ARMED
    frames_sent: int = 0
    progress_callback: Optional[ProgressCallback] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def progress(self) -> float:
        if self.total_frames <= 1:
            return 1.0
        return max(0, self.frames_sent - 1) / (self.total_frames - 1)

    @property
    def active(self) -> bool:
        return self.state in (TransitionState.ARMED, TransitionState.RUNNING)

    def frame_at(self, k: int) -> ColorIntent:
        p = k / (self.total_frames - 1)
        bri_a, bri_b = self.spec.brightness_a, self.spec.brightness_b
        return ColorIntent(
            device_id=self.device.id,
            segment_id=self.spec.segment_id,
            mode=ColorMode.PER_LED,
            per_led_frame=blend_frames(self.frame_a, self.frame_b, p),
            brightness=int(round(bri_a + (bri_b - bri_a) * p)),
            power=True if k == 0 else None,
        )

    def revert_intent(self) -> ColorIntent:
        return ColorIntent(
            device_id=self.device.id,
            segment_id=self.spec.segment_id,
            mode=ColorMode.PER_LED,
            per_led_frame=list(self.frame_a),
            brightness=self.spec.brightness_a,
        )


class TransitionEngine:
    """At most one running transition per device."""

    def __init__(
        self,
        pipeline: ColorPipeline,
        config: Optional[TransitionConfig] = None,
        throttler: Optional[StreamThrottler] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.pipeline = pipeline
        self.config = config or TransitionConfig()
        self.throttler = throttler
        self._sleep = sleep
        self._clock = clock
        self._runs: Dict[str, TransitionRun] = {}
        self.state_changed: Channel[Dict[str, object]] = Channel("transition_state")

    def clamp_duration(self, seconds: float) -> float:
        return max(self.config.min_duration, min(self.config.max_duration, float(seconds)))

    def effective_rate(self, frame_rate: Optional[float]) -> float:
        rate = frame_rate if frame_rate and frame_rate > 0 else self.config.default_frame_rate
        return min(rate, self.config.max_writes_per_second)

    def state(self, device_id: str) -> TransitionState:
        run = self._runs.get(device_id)
        return run.state if run is not None else TransitionState.IDLE

    def get_run(self, device_id: str) -> Optional[TransitionRun]:
        return self._runs.get(device_id)

    def _set_state(self, run: TransitionRun, state: TransitionState) -> None:
        run.state = state
        self.state_changed.publish({
            "device_id": run.device.id,
            "state": state.value,
            "frames_sent": run.frames_sent,
            "total_frames": run.total_frames,
        })

    async def start(
        self,
        device: Device,
        spec: TransitionSpec,
        progress: Optional[ProgressCallback] = None,
    ) -> TransitionRun:
        """Arm and launch a run. Returns immediately; use wait() to join it."""
        led_count = device.segment_length(spec.segment_id)
        if not led_count:
            raise InvalidIntentError(f"unknown LED count for {device.id} segment {spec.segment_id}", device.display_name)

        previous = self._runs.get(device.id)
        if previous is not None and previous.active:
            await self._halt(previous)
            logger.info("[Transition] %s: replaced running transition", device.id)

        if self.throttler is not None:
            self.throttler.cancel_prefix(f"{device.id}:")

        spec.duration_seconds = self.clamp_duration(spec.duration_seconds)
        rate = self.effective_rate(spec.frame_rate)
        total = frame_count(spec.duration_seconds, rate)
        run = TransitionRun(
            device=device,
            spec=spec,
            total_frames=total,
            interval=spec.duration_seconds / (total - 1),
            frame_a=sample_frame(spec.gradient_a, led_count),
            frame_b=sample_frame(spec.gradient_b, led_count),
            progress_callback=progress,
        )
        self._runs[device.id] = run
        self._set_state(run, TransitionState.ARMED)
        run.task = asyncio.create_task(self._run(run))
        logger.info("[Transition] %s: %.1fs, %d frames at %.2fs", device.id, spec.duration_seconds, total, run.interval)
        return run

    async def _run(self, run: TransitionRun) -> None:
        self._set_state(run, TransitionState.RUNNING)
        started = self._clock()
        try:
            for k in range(run.total_frames):
                if k > 0:
                    delay = started + k * run.interval - self._clock()
                    await self._sleep(max(0.0, delay))
                await self.pipeline.send(run.frame_at(k), run.device)
                run.frames_sent += 1
                if run.progress_callback is not None:
                    run.progress_callback(run.frames_sent, run.total_frames)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("[Transition] %s: frame %d failed, aborting: %s", run.device.id, run.frames_sent, e)
            self._set_state(run, TransitionState.CANCELLED)
            await self._revert(run)
            return
        self._set_state(run, TransitionState.COMPLETED)

    async def _halt(self, run: TransitionRun) -> None:
        task = run.task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if run.active:
            self._set_state(run, TransitionState.CANCELLED)

    async def _revert(self, run: TransitionRun) -> bool:
        try:
            await self.pipeline.send(run.revert_intent(), run.device)
            return True
        except Exception as e:
            logger.warning("[Transition] %s: revert to A failed: %s", run.device.id, e)
            return False

    async def cancel(self, device_id: str) -> bool:
        """
        Halt the device's running transition and write A back.

        Returns True when the revert write succeeded. A run that already
        finished is forgotten without a write (the segment keeps showing B)
        and, like a missing run or a failed revert, returns False.
        """
        run = self._runs.pop(device_id, None)
        if run is None:
            return False
        if not run.active:
            self.state_changed.publish({"device_id": device_id, "state": TransitionState.IDLE.value})
            return False
        await self._halt(run)
        reverted = await self._revert(run)
        self.state_changed.publish({"device_id": device_id, "state": TransitionState.IDLE.value})
        logger.info("[Transition] %s: cancelled after %d/%d frames", device_id, run.frames_sent, run.total_frames)
        return reverted

    async def wait(self, device_id: str) -> TransitionState:
        """Join the device's current run and return its final state."""
        run = self._runs.get(device_id)
        if run is None:
            return TransitionState.IDLE
        if run.task is not None:
            await asyncio.gather(run.task, return_exceptions=True)
        return run.state

    async def aclose(self) -> None:
        """Halt all runs without reverting (shutdown)."""
        for run in list(self._runs.values()):
            await self._halt(run)
        self._runs.clear()
