"""
Color pipeline - encodes intents into wire bodies and writes them.

Writes to one device are serialized by a per-device asyncio.Lock so a
chunked per-LED upload is never interleaved with another write to the
same device. Different devices proceed concurrently. Brightness changes
made during a long upload are coalesced to the newest value and slipped
in between chunks.

Nothing is retried: a failed live edit is superseded by the next one.
"""

import asyncio
import logging
from typing import Any, Dict, List

from ..device.client import DeviceClient, build_pixel_bodies
from ..device.errors import DeviceError
from ..device.models import Device
from .intent import ColorIntent, ColorMode

logger = logging.getLogger(__name__)


def encode_intent(intent: ColorIntent, chunk_size: int = 256) -> List[Dict[str, Any]]:
    """Wire bodies for `POST /json/state`, in send order."""
    top: Dict[str, Any] = {}
    if intent.power is not None:
        top["on"] = intent.power
    if intent.brightness is not None:
        top["bri"] = intent.brightness

    segment_extra: Dict[str, Any] = {}
    if intent.cct is not None:
        segment_extra["cct"] = intent.cct

    if intent.mode == ColorMode.PER_LED and intent.per_led_frame:
        return build_pixel_bodies(
            intent.segment_id,
            intent.per_led_frame,
            chunk_size,
            first_extra=top,
            segment_extra=segment_extra,
        )

    if intent.solo_color is not None or segment_extra:
        seg: Dict[str, Any] = {"id": intent.segment_id}
        if intent.solo_color is not None:
            seg["col"] = [list(intent.solo_color)]
        seg.update(segment_extra)
        body = dict(top)
        body["seg"] = [seg]
        return [body]

    # Brightness-only / power-only
    return [top] if top else []


class ColorPipeline:
    """Serialized dispatch of intents to devices."""

    def __init__(self, client: DeviceClient):
        self.client = client
        self._locks: Dict[str, asyncio.Lock] = {}
        # Latest brightness requested while the device was busy; only the newest is kept
        self._pending_brightness: Dict[str, int] = {}

    def _lock_for(self, device_id: str) -> asyncio.Lock:
        lock = self._locks.get(device_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[device_id] = lock
        return lock

    def is_busy(self, device_id: str) -> bool:
        lock = self._locks.get(device_id)
        return lock is not None and lock.locked()

    async def send(self, intent: ColorIntent, device: Device) -> int:
        """
        Validate, encode and write an intent.

        A brightness-only intent arriving while the device is busy is not
        queued: it replaces any earlier pending brightness and the write in
        progress sends it between chunks. That call returns 0.

        Returns the number of requests sent. Raises DeviceError (or
        InvalidIntentError for a malformed intent); never retries.
        """
        intent.validate(device.segment_length(intent.segment_id))
        if intent.is_brightness_only and self.is_busy(device.id):
            self._pending_brightness[device.id] = intent.brightness
            return 0

        bodies = encode_intent(intent, self.client.network.pixel_chunk_size)
        if not bodies:
            return 0

        async with self._lock_for(device.id):
            for body in bodies:
                await self.client.post_state(device, body)
                await self._flush_brightness(device)

        if len(bodies) > 1:
            logger.debug("[Pipeline] %s: %s in %d chunks", device.id, intent.mode.value, len(bodies))
        return len(bodies)

    async def _flush_brightness(self, device: Device) -> None:
        # Runs under the device lock, so nothing new can be parked after the last check
        while device.id in self._pending_brightness:
            brightness = self._pending_brightness.pop(device.id)
            try:
                await self.client.post_state(device, {"bri": brightness})
            except DeviceError as e:
                # Superseded by the next slider move; the color write carries on
                logger.warning("[Pipeline] %s: brightness %d failed: %s", device.id, brightness, e)
