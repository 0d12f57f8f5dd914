"""
Preset sync - local-first presets, best-effort copies on the device.

Saving never waits on the network. The record is persisted locally and a
detached task then tries to store it on the device:

1. fetch the device's preset table (GET /presets.json)
2. pick the lowest unused id (presets 1-250, playlists 1-16)
3. push the payload (psave)
4. attach the device id to the local record (idempotent)

Any failure is logged and the record stays unsynced; resync() retries on
demand. Applying a synced preset sends {"ps": id}; an unsynced one is
replayed locally through the pipeline.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from ..color.temperature import TemperatureModel
from ..device.capabilities import CapabilityDetector
from ..device.client import (
    PLAYLIST_ID_MAX,
    PLAYLIST_ID_MIN,
    PRESET_ID_MAX,
    PRESET_ID_MIN,
    DeviceClient,
)
from ..device.errors import PresetTableFullError, safe_call_async
from ..device.models import Device
from ..storage.presets import (
    ColorPayload,
    EffectPayload,
    Preset,
    PresetKind,
    PresetRepository,
    TransitionPayload,
)
from .intent import build_intent
from .pipeline import ColorPipeline, encode_intent
from .transition import TransitionEngine, TransitionSpec

logger = logging.getLogger(__name__)

# Device-side transition length is stored in deciseconds (16-bit)
MAX_DECISECONDS = 65535


def lowest_free_id(used: Iterable[int], low: int, high: int, device_name: Optional[str] = None) -> int:
    taken = set(used)
    for candidate in range(low, high + 1):
        if candidate not in taken:
            return candidate
    raise PresetTableFullError(f"no free id in {low}-{high}", device_name)


def _deciseconds(seconds: float) -> int:
    return max(0, min(MAX_DECISECONDS, int(round(seconds * 10))))


class PresetSyncCoordinator:
    """Owns preset saving, background device sync, and preset application."""

    def __init__(
        self,
        repository: PresetRepository,
        client: DeviceClient,
        pipeline: ColorPipeline,
        capabilities: Optional[CapabilityDetector] = None,
        transitions: Optional[TransitionEngine] = None,
        temperature_model: Optional[TemperatureModel] = None,
        enabled: bool = True,
    ):
        self.repository = repository
        self.client = client
        self.pipeline = pipeline
        self.capabilities = capabilities or CapabilityDetector()
        self.transitions = transitions
        self.temperature_model = temperature_model
        self.enabled = enabled
        self._tasks: Set[asyncio.Task] = set()
        self._device_locks: Dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Local operations
    # ------------------------------------------------------------------

    def save_preset(self, preset: Preset, device: Optional[Device] = None) -> Preset:
        """Persist locally and return at once; device sync runs in the background."""
        if device is not None and preset.device_id is None:
            preset.device_id = device.id
        self.repository.add(preset)
        logger.info("[PresetSync] Saved %s preset %r (%s)", preset.kind.value, preset.name, preset.local_id)
        if device is not None and self.enabled:
            self._spawn(preset.local_id, device)
        return preset

    def load_presets(self, kind: Optional[PresetKind] = None, device_id: Optional[str] = None) -> List[Preset]:
        return self.repository.list(kind, device_id)

    def delete_preset(self, local_id: str) -> bool:
        """Local deletion only; the device copy is left alone."""
        return self.repository.delete(local_id)

    # ------------------------------------------------------------------
    # Background sync
    # ------------------------------------------------------------------

    def _spawn(self, local_id: str, device: Device) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._background_sync(local_id, device))
        except RuntimeError:
            logger.info("[PresetSync] No event loop, %s stays unsynced until resync", local_id)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _background_sync(self, local_id: str, device: Device) -> None:
        # Let interactive writes queued before us go first
        await asyncio.sleep(0)
        await safe_call_async(lambda: self.push(local_id, device), default=False, context="PresetSync")

    async def drain(self) -> None:
        """Wait for in-flight background syncs (tests, shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _lock_for(self, device_id: str) -> asyncio.Lock:
        lock = self._device_locks.get(device_id)
        if lock is None:
            lock = asyncio.Lock()
            self._device_locks[device_id] = lock
        return lock

    async def push(self, local_id: str, device: Device) -> bool:
        """
        Store one preset on the device and attach its remote id.

        Raises DeviceError on failure. Returns False if the preset no longer
        exists or is already synced to this device.
        """
        # Allocation reads then writes the table; one allocation per device at a time
        async with self._lock_for(device.id):
            # Checked under the lock: a push that held it before us may have stored this preset
            preset = self.repository.get(local_id)
            if preset is None or preset.synced_to(device.id):
                return False

            table = await self.client.get_presets(device)
            used = set(table)

            if preset.kind == PresetKind.TRANSITION:
                remote_id, step_ids = await self._push_transition(preset, device, used)
            else:
                remote_id = lowest_free_id(used, PRESET_ID_MIN, PRESET_ID_MAX, device.display_name)
                await self.client.save_preset(device, remote_id, preset.name, self._preset_state(preset, device))
                step_ids = None

            self.repository.attach_remote_id(local_id, remote_id, device_id=device.id, step_ids=step_ids)
        logger.info("[PresetSync] %r stored on %s as %d", preset.name, device.id, remote_id)
        return True

    async def _push_transition(self, preset: Preset, device: Device, used: Set[int]):
        payload: TransitionPayload = preset.payload
        playlist_id = lowest_free_id(used, PLAYLIST_ID_MIN, PLAYLIST_ID_MAX, device.display_name)
        used = used | {playlist_id}
        step_a = lowest_free_id(used, PRESET_ID_MIN, PRESET_ID_MAX, device.display_name)
        used = used | {step_a}
        step_b = lowest_free_id(used, PRESET_ID_MIN, PRESET_ID_MAX, device.display_name)

        state_a = self._gradient_state(device, payload.gradient_a, payload.brightness_a)
        state_b = self._gradient_state(device, payload.gradient_b, payload.brightness_b)
        await self.client.save_preset(device, step_a, f"{preset.name} A", state_a)
        await self.client.save_preset(device, step_b, f"{preset.name} B", state_b)

        # Show A briefly, then fade into B over the duration and stay there
        fade = _deciseconds(payload.duration_seconds)
        await self.client.save_playlist(
            device,
            playlist_id,
            preset.name,
            preset_ids=[step_a, step_b],
            durations=[1, max(1, fade)],
            transitions=[0, fade],
            end_preset=step_b,
        )
        return playlist_id, [step_a, step_b]

    def _gradient_state(self, device: Device, gradient, brightness: int, temperature: Optional[float] = None) -> Dict[str, Any]:
        caps = self.capabilities.for_segment(device.id, 0)
        temperatures = [temperature] * len(gradient) if temperature is not None else None
        intent = build_intent(device, 0, gradient, temperatures=temperatures, brightness=brightness,
                              capabilities=caps, temperature_model=self.temperature_model)
        intent.power = True
        led_count = device.segment_length(0) or 1
        # One body: a preset is a single state document
        return encode_intent(intent, chunk_size=max(led_count, 1))[0]

    def _preset_state(self, preset: Preset, device: Device) -> Dict[str, Any]:
        payload = preset.payload
        if isinstance(payload, ColorPayload):
            return self._gradient_state(device, payload.gradient, payload.brightness, payload.temperature)
        if isinstance(payload, EffectPayload):
            seg: Dict[str, Any] = {"id": 0, "fx": payload.effect_id}
            if payload.speed is not None:
                seg["sx"] = payload.speed
            if payload.intensity is not None:
                seg["ix"] = payload.intensity
            if payload.palette_id is not None:
                seg["pal"] = payload.palette_id
            return {"on": True, "bri": payload.brightness, "seg": [seg]}
        raise TypeError(f"unsupported payload {type(payload).__name__}")

    async def resync(self, device: Device) -> int:
        """Push every unsynced preset for the device. Returns how many synced."""
        synced = 0
        for preset in self.repository.unsynced(device.id):
            ok = await safe_call_async(lambda p=preset: self.push(p.local_id, device), default=False, context="PresetSync")
            if ok:
                synced += 1
        logger.info("[PresetSync] Resync %s: %d preset(s) stored", device.id, synced)
        return synced

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def apply_preset(self, local_id: str, device: Device) -> bool:
        """Apply a preset. Raises KeyError for unknown ids and DeviceError on write failure."""
        preset = self.repository.get(local_id)
        if preset is None:
            raise KeyError(local_id)

        if preset.synced_to(device.id):
            await self.client.apply_preset(device, preset.remote_id)
            return True

        payload = preset.payload
        if isinstance(payload, ColorPayload):
            caps = self.capabilities.for_segment(device.id, 0)
            temperatures = [payload.temperature] * len(payload.gradient) if payload.temperature is not None else None
            intent = build_intent(device, 0, payload.gradient, temperatures=temperatures,
                                  brightness=payload.brightness, capabilities=caps,
                                  temperature_model=self.temperature_model)
            intent.power = True
            await self.pipeline.send(intent, device)
            return True
        if isinstance(payload, EffectPayload):
            await self.client.set_effect(device, payload.effect_id, 0, payload.speed, payload.intensity,
                                         payload.palette_id, payload.brightness)
            return True
        if self.transitions is None:
            logger.warning("[PresetSync] No transition engine, cannot replay %r", preset.name)
            return False
        spec = TransitionSpec(
            gradient_a=payload.gradient_a,
            brightness_a=payload.brightness_a,
            gradient_b=payload.gradient_b,
            brightness_b=payload.brightness_b,
            duration_seconds=payload.duration_seconds,
        )
        await self.transitions.start(device, spec)
        return True

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

