"""
Optimistic state - show what the user asked for until the device agrees.

When the user flips a control, the intended value is registered here.
Reads merge it with the last confirmed device value:

- no entry                          -> confirmed
- confirmed matches intended        -> confirmed (entry cleared)
- mismatch inside the window        -> intended
- mismatch after the window         -> confirmed (entry cleared)

The window (0.75s by default) covers the device's round trip; past it, a
stale confirmed value is taken to mean the write was lost.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..events import Channel

logger = logging.getLogger(__name__)


@dataclass
class OptimisticEntry:
    intended: Any
    registered_at: float
    deadline: float


class OptimisticStateCoordinator:
    """Latest-only optimistic values per device."""

    def __init__(self, window: float = 0.75, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self._clock = clock
        self._entries: Dict[str, OptimisticEntry] = {}
        self.changed: Channel[Dict[str, Any]] = Channel("optimistic_changed")

    def register_optimistic(self, device_id: str, intended: Any) -> None:
        now = self._clock()
        self._entries[device_id] = OptimisticEntry(intended, now, now + self.window)
        self.changed.publish(self.snapshot())

    def pending(self, device_id: str) -> Optional[Any]:
        entry = self._entries.get(device_id)
        return entry.intended if entry is not None else None

    def current(self, device_id: str, confirmed: Any) -> Any:
        """Value to present for a device given its confirmed value."""
        entry = self._entries.get(device_id)
        if entry is None:
            return confirmed
        if confirmed == entry.intended:
            self.clear(device_id)
            return confirmed
        if self._clock() <= entry.deadline:
            return entry.intended
        logger.debug("[Optimistic] %s: window expired, device reports %r (wanted %r)",
                     device_id, confirmed, entry.intended)
        self.clear(device_id)
        return confirmed

    # Device state refreshes call this; reads and reconciles share one rule
    reconcile = current

    def clear(self, device_id: str) -> None:
        if self._entries.pop(device_id, None) is not None:
            self.changed.publish(self.snapshot())

    def snapshot(self) -> Dict[str, Any]:
        return {device_id: entry.intended for device_id, entry in self._entries.items()}
