"""Color value types: RGB triples, gradient stops, gradients."""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

RGB = Tuple[int, int, int]


def clamp_channel(value: float) -> int:
    """Round and clamp a channel value into 0-255."""
    return max(0, min(255, int(round(value))))


def to_hex(color: RGB) -> str:
    """(255, 128, 0) -> 'FF8000'"""
    return "%02X%02X%02X" % (clamp_channel(color[0]), clamp_channel(color[1]), clamp_channel(color[2]))


def from_hex(value: str) -> RGB:
    """Parse 'RRGGBB' or '#RRGGBB'. Invalid input raises ValueError."""
    text = value.strip().lstrip("#")
    if len(text) != 6:
        raise ValueError(f"hex color must have 6 digits: {value!r}")
    return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))


def _new_stop_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ColorStop:
    """A color pinned to a position along the strip (0 = first LED, 1 = last)."""
    position: float
    color: RGB
    id: str = field(default_factory=_new_stop_id)

    def __post_init__(self):
        object.__setattr__(self, "position", max(0.0, min(1.0, float(self.position))))
        object.__setattr__(self, "color", tuple(clamp_channel(c) for c in self.color))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "position": self.position, "color": to_hex(self.color)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColorStop":
        color = data["color"]
        if isinstance(color, str):
            color = from_hex(color)
        kwargs = {"position": data["position"], "color": tuple(color)}
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)


class Gradient:
    """Ordered, non-empty list of color stops.

    Stops are sorted by position. When two stops share a position the one
    given later wins.
    """

    def __init__(self, stops: Iterable[ColorStop], name: Optional[str] = None):
        by_position: Dict[float, ColorStop] = {}
        for stop in stops:
            by_position[stop.position] = stop
        if not by_position:
            raise ValueError("gradient needs at least one stop")
        self.stops: List[ColorStop] = [by_position[p] for p in sorted(by_position)]
        self.name = name

    @classmethod
    def solid(cls, color: RGB) -> "Gradient":
        return cls([ColorStop(0.0, color)])

    @classmethod
    def from_colors(cls, colors: List[RGB]) -> "Gradient":
        """Evenly spaced stops, first at 0 and last at 1."""
        if len(colors) == 1:
            return cls.solid(colors[0])
        step = 1.0 / (len(colors) - 1)
        return cls([ColorStop(i * step, c) for i, c in enumerate(colors)])

    @property
    def is_solid(self) -> bool:
        return len(self.stops) == 1

    def copy(self) -> "Gradient":
        return Gradient([ColorStop(s.position, s.color, s.id) for s in self.stops], name=self.name)

    def to_list(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.stops]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]], name: Optional[str] = None) -> "Gradient":
        return cls([ColorStop.from_dict(d) for d in data], name=name)

    def __len__(self) -> int:
        return len(self.stops)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Gradient):
            return NotImplemented
        return [(s.position, s.color) for s in self.stops] == [(s.position, s.color) for s in other.stops]

    def __repr__(self) -> str:
        inner = ", ".join(f"{to_hex(s.color)}@{s.position:.3f}" for s in self.stops)
        return f"Gradient([{inner}])"
