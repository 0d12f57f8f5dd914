"""Scenes - a named snapshot of what a device should show.

A scene is one of: a static gradient, an A->B transition, or a built-in
effect, always with a brightness. Persisted as one list under `scenes/all`.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..color.types import Gradient
from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)

SCENES_KEY = "scenes/all"


@dataclass
class Scene:
    name: str
    device_id: str
    brightness: int
    primary: Gradient
    transition_enabled: bool = False
    secondary: Optional[Gradient] = None
    duration_seconds: Optional[float] = None
    brightness_a: Optional[int] = None
    brightness_b: Optional[int] = None
    effects_enabled: bool = False
    effect_id: Optional[int] = None
    palette_id: Optional[int] = None
    speed: Optional[int] = None
    intensity: Optional[int] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        self.brightness = max(0, min(255, int(self.brightness)))

    @property
    def is_transition(self) -> bool:
        return self.transition_enabled and self.secondary is not None and self.duration_seconds is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "device_id": self.device_id,
            "created_at": self.created_at,
            "brightness": self.brightness,
            "primary_stops": self.primary.to_list(),
            "transition_enabled": self.transition_enabled,
            "secondary_stops": self.secondary.to_list() if self.secondary else None,
            "duration_seconds": self.duration_seconds,
            "brightness_a": self.brightness_a,
            "brightness_b": self.brightness_b,
            "effects_enabled": self.effects_enabled,
            "effect_id": self.effect_id,
            "palette_id": self.palette_id,
            "speed": self.speed,
            "intensity": self.intensity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scene":
        secondary = data.get("secondary_stops")
        return cls(
            id=data["id"],
            name=data["name"],
            device_id=data["device_id"],
            created_at=data.get("created_at", time.time()),
            brightness=data["brightness"],
            primary=Gradient.from_list(data["primary_stops"]),
            transition_enabled=data.get("transition_enabled", False),
            secondary=Gradient.from_list(secondary) if secondary else None,
            duration_seconds=data.get("duration_seconds"),
            brightness_a=data.get("brightness_a"),
            brightness_b=data.get("brightness_b"),
            effects_enabled=data.get("effects_enabled", False),
            effect_id=data.get("effect_id"),
            palette_id=data.get("palette_id"),
            speed=data.get("speed"),
            intensity=data.get("intensity"),
        )


class SceneRepository:
    def __init__(self, store: KeyValueStore):
        self._store = store
        self._scenes: Dict[str, Scene] = {}
        for entry in store.get(SCENES_KEY, []) or []:
            try:
                scene = Scene.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("[Scenes] Skipping unreadable scene: %s", e)
                continue
            self._scenes[scene.id] = scene

    def _persist(self) -> None:
        self._store.set(SCENES_KEY, [s.to_dict() for s in self.list()])

    def add(self, scene: Scene) -> Scene:
        self._scenes[scene.id] = scene
        self._persist()
        return scene

    def get(self, scene_id: str) -> Optional[Scene]:
        return self._scenes.get(scene_id)

    def list(self, device_id: Optional[str] = None) -> List[Scene]:
        scenes = [s for s in self._scenes.values() if device_id is None or s.device_id == device_id]
        return sorted(scenes, key=lambda s: s.created_at)

    def delete(self, scene_id: str) -> bool:
        if self._scenes.pop(scene_id, None) is None:
            return False
        self._persist()
        return True
