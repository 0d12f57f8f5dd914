"""
Presets - locally owned records of saved colors, effects and transitions.

A preset is created locally first and is usable immediately. Background
sync may later attach the id the device stored it under (`remote_id`);
that is the only mutation a preset ever sees. Deletion is local only.

Persisted under:
- presets/color       shared across devices
- presets/effect      per device
- presets/transition  per device (stored on the device as a playlist)
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..color.types import Gradient
from ..events import Channel
from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class PresetKind(Enum):
    COLOR = "color"
    EFFECT = "effect"
    TRANSITION = "transition"

    @property
    def store_key(self) -> str:
        return f"presets/{self.value}"


def _clamp_bri(value: int) -> int:
    return max(0, min(255, int(value)))


@dataclass
class ColorPayload:
    """Gradient + brightness (+ optional normalized temperature)."""
    gradient: Gradient
    brightness: int = 255
    temperature: Optional[float] = None

    def __post_init__(self):
        self.brightness = _clamp_bri(self.brightness)

    def to_dict(self) -> Dict[str, Any]:
        return {"stops": self.gradient.to_list(), "brightness": self.brightness, "temperature": self.temperature}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColorPayload":
        return cls(Gradient.from_list(data["stops"]), data.get("brightness", 255), data.get("temperature"))


@dataclass
class EffectPayload:
    """Built-in device effect with its tuning."""
    effect_id: int
    brightness: int = 255
    speed: Optional[int] = None
    intensity: Optional[int] = None
    palette_id: Optional[int] = None

    def __post_init__(self):
        self.brightness = _clamp_bri(self.brightness)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "effect_id": self.effect_id,
            "brightness": self.brightness,
            "speed": self.speed,
            "intensity": self.intensity,
            "palette_id": self.palette_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EffectPayload":
        return cls(
            effect_id=data["effect_id"],
            brightness=data.get("brightness", 255),
            speed=data.get("speed"),
            intensity=data.get("intensity"),
            palette_id=data.get("palette_id"),
        )


@dataclass
class TransitionPayload:
    """Gradient A -> gradient B over a duration, stopping at B."""
    gradient_a: Gradient
    brightness_a: int
    gradient_b: Gradient
    brightness_b: int
    duration_seconds: float

    def __post_init__(self):
        self.brightness_a = _clamp_bri(self.brightness_a)
        self.brightness_b = _clamp_bri(self.brightness_b)
        self.duration_seconds = max(0.1, float(self.duration_seconds))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gradient_a": self.gradient_a.to_list(),
            "brightness_a": self.brightness_a,
            "gradient_b": self.gradient_b.to_list(),
            "brightness_b": self.brightness_b,
            "duration_seconds": self.duration_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransitionPayload":
        return cls(
            gradient_a=Gradient.from_list(data["gradient_a"]),
            brightness_a=data["brightness_a"],
            gradient_b=Gradient.from_list(data["gradient_b"]),
            brightness_b=data["brightness_b"],
            duration_seconds=data["duration_seconds"],
        )


Payload = Union[ColorPayload, EffectPayload, TransitionPayload]

_PAYLOAD_TYPES = {
    PresetKind.COLOR: ColorPayload,
    PresetKind.EFFECT: EffectPayload,
    PresetKind.TRANSITION: TransitionPayload,
}


def _new_local_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Preset:
    """A saved preset of any kind."""
    kind: PresetKind
    name: str
    payload: Payload
    device_id: Optional[str] = None
    remote_id: Optional[int] = None
    # Step presets backing a transition playlist on the device
    remote_step_ids: List[int] = field(default_factory=list)
    local_id: str = field(default_factory=_new_local_id)
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        expected = _PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(f"{self.kind.value} preset needs {expected.__name__}, got {type(self.payload).__name__}")

    @property
    def synced(self) -> bool:
        return self.remote_id is not None

    @property
    def shared(self) -> bool:
        """Color presets apply to any device; device_id only records where remote_id lives."""
        return self.kind == PresetKind.COLOR or self.device_id is None

    def synced_to(self, device_id: str) -> bool:
        return self.remote_id is not None and self.device_id == device_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local_id": self.local_id,
            "kind": self.kind.value,
            "name": self.name,
            "payload": self.payload.to_dict(),
            "device_id": self.device_id,
            "remote_id": self.remote_id,
            "remote_step_ids": list(self.remote_step_ids),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Preset":
        kind = PresetKind(data["kind"])
        return cls(
            kind=kind,
            name=data["name"],
            payload=_PAYLOAD_TYPES[kind].from_dict(data["payload"]),
            device_id=data.get("device_id"),
            remote_id=data.get("remote_id"),
            remote_step_ids=list(data.get("remote_step_ids", [])),
            local_id=data["local_id"],
            created_at=data.get("created_at", time.time()),
        )


class PresetRepository:
    """Single writer for preset records; publishes the full list on change."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._presets: Dict[str, Preset] = {}
        self.changed: Channel[List[Preset]] = Channel("presets_changed")
        self._load()

    def _load(self) -> None:
        for kind in PresetKind:
            for entry in self._store.get(kind.store_key, []) or []:
                try:
                    preset = Preset.from_dict(entry)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("[Presets] Skipping unreadable %s preset: %s", kind.value, e)
                    continue
                self._presets[preset.local_id] = preset
        if self._presets:
            logger.info("[Presets] Loaded %d preset(s)", len(self._presets))

    def _persist(self, kind: PresetKind) -> None:
        records = [p.to_dict() for p in self.list(kind)]
        self._store.set(kind.store_key, records)

    def _publish(self) -> None:
        self.changed.publish(self.list())

    def add(self, preset: Preset) -> Preset:
        self._presets[preset.local_id] = preset
        self._persist(preset.kind)
        self._publish()
        return preset

    def get(self, local_id: str) -> Optional[Preset]:
        return self._presets.get(local_id)

    def list(self, kind: Optional[PresetKind] = None, device_id: Optional[str] = None) -> List[Preset]:
        """Presets sorted by creation time. Color presets are shared and match any device."""
        result = []
        for preset in self._presets.values():
            if kind is not None and preset.kind != kind:
                continue
            if device_id is not None and not preset.shared and preset.device_id != device_id:
                continue
            result.append(preset)
        return sorted(result, key=lambda p: p.created_at)

    def unsynced(self, device_id: Optional[str] = None) -> List[Preset]:
        return [p for p in self.list(device_id=device_id) if not p.synced]

    def attach_remote_id(
        self,
        local_id: str,
        remote_id: int,
        device_id: Optional[str] = None,
        step_ids: Optional[List[int]] = None,
    ) -> bool:
        """Record the device-side id. Idempotent; a deleted preset is ignored."""
        preset = self._presets.get(local_id)
        if preset is None:
            return False
        new_device = device_id if device_id is not None else preset.device_id
        new_steps = list(step_ids) if step_ids is not None else preset.remote_step_ids
        if (preset.remote_id, preset.device_id, preset.remote_step_ids) == (remote_id, new_device, new_steps):
            return True
        preset.remote_id = remote_id
        preset.device_id = new_device
        preset.remote_step_ids = new_steps
        self._persist(preset.kind)
        self._publish()
        return True

    def delete(self, local_id: str) -> bool:
        preset = self._presets.pop(local_id, None)
        if preset is None:
            return False
        self._persist(preset.kind)
        self._publish()
        return True

    def __len__(self) -> int:
        return len(self._presets)
