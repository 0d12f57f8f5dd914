"""
Segment capabilities - what each LED segment can render.

Controllers report per-segment light capabilities in `info.leds.seglc`
as bit flags:
- bit 0: RGB color
- bit 1: dedicated white channel
- bit 2: correlated color temperature (CCT)

A controller that omits `seglc` is treated as a plain RGB strip.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

RGB_BIT = 0b001
WHITE_BIT = 0b010
CCT_BIT = 0b100


@dataclass(frozen=True)
class SegmentCapabilities:
    """Rendering features of one segment."""
    supports_rgb: bool = True
    supports_white: bool = False
    supports_cct: bool = False

    @classmethod
    def from_flags(cls, flags: int) -> "SegmentCapabilities":
        return cls(
            supports_rgb=bool(flags & RGB_BIT),
            supports_white=bool(flags & WHITE_BIT),
            supports_cct=bool(flags & CCT_BIT),
        )

    @property
    def flags(self) -> int:
        return (
            (RGB_BIT if self.supports_rgb else 0)
            | (WHITE_BIT if self.supports_white else 0)
            | (CCT_BIT if self.supports_cct else 0)
        )

    def describe(self) -> str:
        parts = []
        if self.supports_rgb:
            parts.append("RGB")
        if self.supports_white:
            parts.append("White")
        if self.supports_cct:
            parts.append("CCT")
        return ", ".join(parts) if parts else "None"


RGB_ONLY = SegmentCapabilities()


def parse_seglc(seglc: Optional[List[int]]) -> Dict[int, SegmentCapabilities]:
    """Decode a seglc array into per-segment capabilities."""
    if not seglc:
        return {0: RGB_ONLY}
    return {segment_id: SegmentCapabilities.from_flags(int(flags)) for segment_id, flags in enumerate(seglc)}


class CapabilityDetector:
    """Caches decoded capabilities per device.

    Lookups for devices or segments that were never detected return the
    RGB-only fallback, so the CCT path stays off until the device proves
    it supports it.
    """

    def __init__(self):
        self._cache: Dict[str, Dict[int, SegmentCapabilities]] = {}

    def detect(self, device_id: str, seglc: Optional[List[int]]) -> Dict[int, SegmentCapabilities]:
        segments = parse_seglc(seglc)
        if not seglc:
            logger.debug("[Capabilities] No seglc for %s, assuming RGB-only", device_id)
        else:
            logger.info("[Capabilities] %s: %d segment(s) %s", device_id, len(segments),
                        "; ".join(f"{sid}={cap.describe()}" for sid, cap in segments.items()))
        self._cache[device_id] = segments
        return segments

    def get_cached(self, device_id: str) -> Optional[Dict[int, SegmentCapabilities]]:
        return self._cache.get(device_id)

    def for_segment(self, device_id: str, segment_id: int = 0) -> SegmentCapabilities:
        segments = self._cache.get(device_id)
        if not segments:
            return RGB_ONLY
        return segments.get(segment_id, RGB_ONLY)

    def segment_count(self, device_id: str) -> int:
        segments = self._cache.get(device_id)
        return len(segments) if segments else 1

    def clear(self, device_id: Optional[str] = None) -> None:
        """Drop cached capabilities for one device, or all of them."""
        if device_id is None:
            self._cache.clear()
        else:
            self._cache.pop(device_id, None)
