"""Local persistence - atomic JSON key-value store and the repositories built on it."""

from .atomic import atomic_json_write, read_json
from .device_cache import DeviceCache
from .kv_store import KeyValueStore
from .presets import (
    ColorPayload,
    EffectPayload,
    Preset,
    PresetKind,
    PresetRepository,
    TransitionPayload,
)
from .scenes import Scene, SceneRepository

__all__ = [
    "atomic_json_write",
    "read_json",
    "DeviceCache",
    "KeyValueStore",
    "ColorPayload",
    "EffectPayload",
    "Preset",
    "PresetKind",
    "PresetRepository",
    "TransitionPayload",
    "Scene",
    "SceneRepository",
]
