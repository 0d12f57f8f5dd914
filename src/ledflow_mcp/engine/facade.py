"""
Lighting engine - the surface presentation code and the MCP tools call.

Wires the pieces together at startup and passes them by handle:

    DeviceClient -> ColorPipeline -> StreamThrottler / TransitionEngine
    KeyValueStore -> PresetRepository / SceneRepository / DeviceCache
    PresetSyncCoordinator, OptimisticStateCoordinator, CapabilityDetector

Device errors stop here: operations log them and return False so a
caller can show a banner without handling the exception taxonomy.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import httpx

from ..color.temperature import TemperatureModel, normalized_from_device_cct
from ..color.types import ColorStop, Gradient
from ..config import EngineConfig, get_engine_config
from ..device.capabilities import CapabilityDetector
from ..device.client import DeviceClient
from ..device.errors import DeviceError, InvalidResponseError
from ..device.models import Device
from ..storage.device_cache import DeviceCache
from ..storage.kv_store import KeyValueStore
from ..storage.presets import Preset, PresetKind, PresetRepository
from ..storage.scenes import Scene, SceneRepository
from .intent import ColorIntent, build_intent
from .optimistic import OptimisticStateCoordinator
from .pipeline import ColorPipeline
from .preset_sync import PresetSyncCoordinator
from .throttle import EditPhase, StreamThrottler
from .transition import TransitionEngine, TransitionSpec, TransitionState

logger = logging.getLogger(__name__)

GradientLike = Union[Gradient, Iterable[ColorStop]]


def as_gradient(stops: GradientLike) -> Gradient:
    if isinstance(stops, Gradient):
        return stops
    return Gradient(list(stops))


class LightingEngine:
    """Collaborator-facing facade over the color engine."""

    def __init__(
        self,
        config: EngineConfig,
        client: DeviceClient,
        store: KeyValueStore,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.config = config
        self.client = client
        self.store = store

        self.capabilities = CapabilityDetector()
        self.temperature_model = TemperatureModel.from_config(config.temperature)
        self.pipeline = ColorPipeline(client)
        self.throttler = StreamThrottler(
            self._dispatch_edit,
            single_window=config.throttle.single_window,
            dual_window=config.throttle.dual_window,
        )
        self.transitions = TransitionEngine(
            self.pipeline, config.transition, throttler=self.throttler, sleep=sleep, clock=clock,
        )
        self.optimistic = OptimisticStateCoordinator(config.optimistic.reconciliation_window, clock=clock)
        self.presets = PresetRepository(store)
        self.preset_sync = PresetSyncCoordinator(
            self.presets,
            client,
            self.pipeline,
            capabilities=self.capabilities,
            transitions=self.transitions,
            temperature_model=self.temperature_model,
            enabled=config.storage.preset_sync_enabled,
        )
        self.scenes = SceneRepository(store)
        self.device_cache = DeviceCache(store)
        self.devices: Dict[str, Device] = {}

        for entry in config.devices:
            self.add_device(Device.from_entry(entry))

    @classmethod
    def create(
        cls,
        config: Optional[EngineConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "LightingEngine":
        """Build the engine and everything it owns from configuration."""
        config = config or get_engine_config()
        client = DeviceClient(config.network, transport=transport)
        store = KeyValueStore(config.storage.root)
        engine = cls(config, client, store)
        logger.info("[Engine] Ready with %d device(s), state in %s", len(engine.devices), store.root)
        return engine

    async def aclose(self) -> None:
        await self.throttler.aclose()
        await self.transitions.aclose()
        await self.preset_sync.drain()
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def add_device(self, device: Device) -> Device:
        self.devices[device.id] = device
        return device

    def get_device(self, device_id: str) -> Device:
        device = self.devices.get(device_id)
        if device is None:
            raise KeyError(f"unknown device: {device_id}")
        return device

    async def refresh_device(self, device: Device) -> bool:
        """Fetch device state, detect capabilities, reconcile optimistic power."""
        try:
            snapshot = await self.client.get_state(device)
        except InvalidResponseError as e:
            # Device answered but not in a shape we understand: keep it RGB-only
            logger.warning("[Engine] %s: unusable state response, CCT disabled: %s", device.id, e)
            self.capabilities.detect(device.id, None)
            return False
        except DeviceError as e:
            logger.warning("[Engine] %s: refresh failed: %s", device.id, e)
            return False

        device.apply_snapshot(snapshot)
        self.capabilities.detect(device.id, snapshot.info.seglc)
        self.optimistic.reconcile(device.id, snapshot.state.on)
        self.device_cache.updated.publish({
            "device_id": device.id,
            "device": device.to_dict(),
            "temperature": self.segment_temperature(device),
        })
        return True

    def segment_temperature(self, device: Device, segment_id: int = 0) -> Optional[float]:
        """
        Normalized color temperature last reported for a segment.

        Segments with a CCT channel report it directly; otherwise it is
        estimated from the primary color (lossy). None before any refresh.
        """
        if device.state is None:
            return None
        seg = device.state.segment(segment_id)
        if seg is None:
            return None
        if self.capabilities.for_segment(device.id, segment_id).supports_cct and seg.cct is not None:
            return normalized_from_device_cct(seg.cct)
        if seg.primary_color is None:
            return None
        return self.temperature_model.rgb_to_approx_temperature(seg.primary_color)

    # ------------------------------------------------------------------
    # Color
    # ------------------------------------------------------------------

    def _build(
        self,
        device: Device,
        stops: GradientLike,
        segment_id: int,
        temperatures: Optional[Sequence[Optional[float]]],
        brightness: Optional[int],
    ) -> ColorIntent:
        return build_intent(
            device,
            segment_id,
            as_gradient(stops),
            temperatures=temperatures,
            brightness=brightness,
            capabilities=self.capabilities.for_segment(device.id, segment_id),
            temperature_model=self.temperature_model,
        )

    async def apply_gradient(
        self,
        device: Device,
        stops: GradientLike,
        segment_id: int = 0,
        temperatures: Optional[Sequence[Optional[float]]] = None,
        brightness: Optional[int] = None,
    ) -> bool:
        """Render a gradient (or solid color) on a segment right away."""
        gradient = as_gradient(stops)
        try:
            intent = self._build(device, gradient, segment_id, temperatures, brightness)
            await self.pipeline.send(intent, device)
        except DeviceError as e:
            logger.warning("[Engine] %s: apply gradient failed: %s", device.id, e)
            return False
        self.device_cache.set_last_gradient(device.id, gradient)
        return True

    async def apply_color_intent(self, intent: ColorIntent, device: Device) -> bool:
        try:
            await self.pipeline.send(intent, device)
            return True
        except DeviceError as e:
            logger.warning("[Engine] %s: write failed: %s", device.id, e)
            return False

    async def _dispatch_edit(self, control_key: str, payload) -> None:
        intent, device = payload
        await self.pipeline.send(intent, device)

    async def edit_gradient(
        self,
        device: Device,
        control_id: str,
        phase: EditPhase,
        stops: GradientLike,
        segment_id: int = 0,
        temperatures: Optional[Sequence[Optional[float]]] = None,
        brightness: Optional[int] = None,
        dual: bool = False,
    ) -> bool:
        """
        Throttled gradient edit for drags.

        CHANGED reports are debounced per control; ENDED writes at once.
        A running transition on the device is cancelled first.
        """
        run = self.transitions.get_run(device.id)
        if run is not None and run.active:
            await self.transitions.cancel(device.id)

        gradient = as_gradient(stops)
        try:
            intent = self._build(device, gradient, segment_id, temperatures, brightness)
        except DeviceError as e:
            logger.warning("[Engine] %s: edit rejected: %s", device.id, e)
            return False

        sent = await self.throttler.report(f"{device.id}:{control_id}", phase, (intent, device), dual=dual)
        if phase is EditPhase.ENDED and sent:
            self.device_cache.set_last_gradient(device.id, gradient)
        return sent

    async def set_brightness(self, device: Device, brightness: int, phase: EditPhase = EditPhase.ENDED) -> bool:
        """Brightness slider. Throttled like any other control; never touches color."""
        intent = ColorIntent.brightness_only(device.id, brightness)
        return await self.throttler.report(f"{device.id}:brightness", phase, (intent, device))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start_transition(
        self,
        from_: Optional[GradientLike],
        a_brightness: int,
        to: Optional[GradientLike],
        b_brightness: Optional[int],
        duration_sec: Optional[float],
        device: Device,
        segment_id: int = 0,
        frame_rate: Optional[float] = None,
    ) -> bool:
        """
        Start an A->B transition. A defaults to the device's last applied
        gradient, B to a copy of A, the duration to the device's last choice.
        """
        gradient_a = as_gradient(from_) if from_ is not None else self.device_cache.last_gradient(device.id)
        if gradient_a is None:
            logger.warning("[Engine] %s: no gradient A for transition", device.id)
            return False
        if duration_sec is None:
            duration_sec = self.device_cache.transition_duration(device.id, self.config.transition.default_duration)

        spec = TransitionSpec(
            gradient_a=gradient_a,
            brightness_a=a_brightness,
            gradient_b=as_gradient(to) if to is not None else None,
            brightness_b=b_brightness,
            duration_seconds=duration_sec,
            frame_rate=frame_rate or self.config.transition.default_frame_rate,
            segment_id=segment_id,
        )
        try:
            await self.transitions.start(device, spec)
        except DeviceError as e:
            logger.warning("[Engine] %s: transition not started: %s", device.id, e)
            return False
        self.device_cache.set_transition_duration(device.id, spec.duration_seconds)
        return True

    async def cancel_active_transition(self, device: Device) -> bool:
        return await self.transitions.cancel(device.id)

    def transition_state(self, device: Device) -> TransitionState:
        return self.transitions.state(device.id)

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    def save_preset(self, preset: Preset, device: Optional[Device] = None) -> Preset:
        return self.preset_sync.save_preset(preset, device)

    async def apply_preset(self, local_id: str, device: Device) -> bool:
        try:
            return await self.preset_sync.apply_preset(local_id, device)
        except KeyError:
            logger.warning("[Engine] Unknown preset %s", local_id)
            return False
        except DeviceError as e:
            logger.warning("[Engine] %s: apply preset failed: %s", device.id, e)
            return False

    def load_presets(self, kind: Optional[PresetKind] = None, device_id: Optional[str] = None) -> List[Preset]:
        return self.preset_sync.load_presets(kind, device_id)

    def delete_preset(self, local_id: str) -> bool:
        return self.preset_sync.delete_preset(local_id)

    async def resync_presets(self, device: Device) -> int:
        return await self.preset_sync.resync(device)

    # ------------------------------------------------------------------
    # Power
    # ------------------------------------------------------------------

    def register_optimistic_power_state(self, device: Device, on: bool) -> None:
        self.optimistic.register_optimistic(device.id, bool(on))

    def get_current_power_state(self, device: Device) -> Optional[bool]:
        return self.optimistic.current(device.id, device.is_on)

    async def set_power(self, device: Device, on: bool) -> bool:
        self.register_optimistic_power_state(device, on)
        try:
            await self.pipeline.send(ColorIntent.power_only(device.id, on), device)
        except DeviceError as e:
            logger.warning("[Engine] %s: power %s failed: %s", device.id, "on" if on else "off", e)
            return False
        return True

    # ------------------------------------------------------------------
    # Scenes
    # ------------------------------------------------------------------

    def save_scene(self, scene: Scene) -> Scene:
        return self.scenes.add(scene)

    async def apply_scene(self, scene: Union[Scene, str], device: Optional[Device] = None) -> bool:
        """Cancel anything running, set brightness, then effect, transition or static gradient."""
        if isinstance(scene, str):
            found = self.scenes.get(scene)
            if found is None:
                logger.warning("[Engine] Unknown scene %s", scene)
                return False
            scene = found
        device = device or self.get_device(scene.device_id)

        run = self.transitions.get_run(device.id)
        if run is not None and run.active:
            await self.transitions.cancel(device.id)
        self.throttler.cancel_prefix(f"{device.id}:")

        try:
            await self.pipeline.send(ColorIntent.brightness_only(device.id, scene.brightness), device)
            if scene.effects_enabled:
                base = scene.primary.stops[0].color
                await self.pipeline.send(ColorIntent(device_id=device.id, solo_color=base), device)
                await self.client.set_effect(device, scene.effect_id or 0, 0, scene.speed,
                                             scene.intensity, scene.palette_id)
                return True
        except DeviceError as e:
            logger.warning("[Engine] %s: scene %r failed: %s", device.id, scene.name, e)
            return False

        if scene.is_transition:
            return await self.start_transition(
                scene.primary,
                scene.brightness_a if scene.brightness_a is not None else scene.brightness,
                scene.secondary,
                scene.brightness_b if scene.brightness_b is not None else scene.brightness,
                scene.duration_seconds,
                device,
            )
        return await self.apply_gradient(device, scene.primary)
