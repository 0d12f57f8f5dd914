"""
Device models - parsed controller state and the local device record.

`GET /json` returns {"state": {...}, "info": {...}}. Parsing is strict about
the fields the engine depends on (state.on, state.bri, info.leds.count) and
lenient about the rest. Missing required fields raise InvalidResponseError.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..color.types import RGB, clamp_channel
from .capabilities import SegmentCapabilities, parse_seglc
from .errors import InvalidResponseError


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise InvalidResponseError(f"missing field {where}.{key}")
    return data[key]


@dataclass
class SegmentState:
    """One segment as reported by the device."""
    id: int
    start: int = 0
    stop: int = 0
    length: int = 0
    on: bool = True
    brightness: int = 255
    colors: List[RGB] = field(default_factory=list)
    cct: Optional[int] = None
    fx: int = 0
    sx: int = 128
    ix: int = 128
    pal: int = 0

    @classmethod
    def from_json(cls, data: Dict[str, Any], index: int = 0) -> "SegmentState":
        start = int(data.get("start", 0))
        stop = int(data.get("stop", start))
        colors = []
        for col in data.get("col", []) or []:
            if isinstance(col, (list, tuple)) and len(col) >= 3:
                colors.append((clamp_channel(col[0]), clamp_channel(col[1]), clamp_channel(col[2])))
        return cls(
            id=int(data.get("id", index)),
            start=start,
            stop=stop,
            length=int(data.get("len", stop - start)),
            on=bool(data.get("on", True)),
            brightness=int(data.get("bri", 255)),
            colors=colors,
            cct=data.get("cct"),
            fx=int(data.get("fx", 0)),
            sx=int(data.get("sx", 128)),
            ix=int(data.get("ix", 128)),
            pal=int(data.get("pal", 0)),
        )

    @property
    def primary_color(self) -> Optional[RGB]:
        return self.colors[0] if self.colors else None


@dataclass
class DeviceState:
    """Top-level on/brightness plus segment states."""
    on: bool
    brightness: int
    segments: List[SegmentState] = field(default_factory=list)
    preset_id: Optional[int] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "DeviceState":
        on = _require(data, "on", "state")
        bri = _require(data, "bri", "state")
        segments = [SegmentState.from_json(s, i) for i, s in enumerate(data.get("seg", []) or [])]
        ps = data.get("ps")
        return cls(
            on=bool(on),
            brightness=int(bri),
            segments=segments,
            preset_id=ps if isinstance(ps, int) and ps > 0 else None,
        )

    def segment(self, segment_id: int) -> Optional[SegmentState]:
        for seg in self.segments:
            if seg.id == segment_id:
                return seg
        return None


@dataclass
class DeviceInfo:
    """Static-ish device information."""
    name: str
    led_count: int
    mac: str = ""
    version: str = ""
    seglc: Optional[List[int]] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "DeviceInfo":
        leds = _require(data, "leds", "info")
        count = _require(leds, "count", "info.leds")
        seglc = leds.get("seglc")
        return cls(
            name=str(data.get("name", "")),
            led_count=int(count),
            mac=str(data.get("mac", "")),
            version=str(data.get("ver", "")),
            seglc=[int(v) for v in seglc] if isinstance(seglc, list) else None,
        )

    @property
    def capabilities(self) -> Dict[int, SegmentCapabilities]:
        return parse_seglc(self.seglc)


@dataclass
class DeviceSnapshot:
    """Parsed `GET /json` response."""
    state: DeviceState
    info: DeviceInfo

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "DeviceSnapshot":
        if not isinstance(data, dict):
            raise InvalidResponseError("expected a JSON object")
        return cls(
            state=DeviceState.from_json(_require(data, "state", "root")),
            info=DeviceInfo.from_json(_require(data, "info", "root")),
        )


@dataclass
class Device:
    """A controller known to the engine."""
    id: str
    host: str
    name: str = ""
    segment_lengths: List[int] = field(default_factory=lambda: [120])
    state: Optional[DeviceState] = None
    info: Optional[DeviceInfo] = None

    @classmethod
    def from_entry(cls, entry) -> "Device":
        """Build from a config DeviceEntry."""
        return cls(id=entry.id, host=entry.host, name=entry.name or entry.id,
                   segment_lengths=list(entry.segment_lengths))

    @property
    def base_url(self) -> str:
        host = self.host.rstrip("/")
        if host.startswith("http://") or host.startswith("https://"):
            return host
        return f"http://{host}"

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def segment_length(self, segment_id: int = 0) -> Optional[int]:
        """LED count of a segment. Device-reported state wins over config."""
        if self.state is not None:
            seg = self.state.segment(segment_id)
            if seg is not None and seg.length > 0:
                return seg.length
        if 0 <= segment_id < len(self.segment_lengths):
            return self.segment_lengths[segment_id]
        return None

    def apply_snapshot(self, snapshot: DeviceSnapshot) -> None:
        self.state = snapshot.state
        self.info = snapshot.info
        if snapshot.info.name and not self.name:
            self.name = snapshot.info.name
        reported = [s.length for s in snapshot.state.segments if s.length > 0]
        if reported:
            self.segment_lengths = reported

    @property
    def is_on(self) -> Optional[bool]:
        return self.state.on if self.state is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "host": self.host,
            "segment_lengths": list(self.segment_lengths),
            "on": self.is_on,
            "brightness": self.state.brightness if self.state else None,
        }
