"""Per-device UI caches: the last applied gradient and the chosen transition duration.

Owned here, published on `updated`; surfaces read snapshots and never
write these maps directly.
"""

import logging
from typing import Any, Dict, Optional

from ..color.types import Gradient
from ..events import Channel
from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)

LAST_GRADIENT_KEY = "devices/last_gradient"
TRANSITION_DURATION_KEY = "devices/transition_duration"


class DeviceCache:
    def __init__(self, store: KeyValueStore):
        self._store = store
        self._gradients: Dict[str, Gradient] = {}
        self._durations: Dict[str, float] = {}
        self.updated: Channel[Dict[str, Any]] = Channel("device_updated")

        for device_id, stops in (store.get(LAST_GRADIENT_KEY, {}) or {}).items():
            try:
                self._gradients[device_id] = Gradient.from_list(stops)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("[DeviceCache] Dropping cached gradient for %s: %s", device_id, e)
        for device_id, seconds in (store.get(TRANSITION_DURATION_KEY, {}) or {}).items():
            try:
                self._durations[device_id] = float(seconds)
            except (TypeError, ValueError):
                continue

    def last_gradient(self, device_id: str) -> Optional[Gradient]:
        gradient = self._gradients.get(device_id)
        return gradient.copy() if gradient is not None else None

    def set_last_gradient(self, device_id: str, gradient: Gradient) -> None:
        self._gradients[device_id] = gradient.copy()
        self._store.set(LAST_GRADIENT_KEY, {k: g.to_list() for k, g in self._gradients.items()})
        self.updated.publish({"device_id": device_id, "last_gradient": gradient.to_list()})

    def transition_duration(self, device_id: str, default: Optional[float] = None) -> Optional[float]:
        return self._durations.get(device_id, default)

    def set_transition_duration(self, device_id: str, seconds: float) -> None:
        self._durations[device_id] = float(seconds)
        self._store.set(TRANSITION_DURATION_KEY, dict(self._durations))
        self.updated.publish({"device_id": device_id, "transition_duration": float(seconds)})
