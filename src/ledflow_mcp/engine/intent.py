"""
Color intents - what a single write to a segment should accomplish.

An intent is a caller-owned value. It is either a solid color or a per-LED
frame, optionally with a color temperature (cct 0-255), brightness and
power. `build_intent` turns a gradient into the cheapest intent that
renders it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from ..color.gradient import sample_frame
from ..color.temperature import TemperatureModel, eight_bit_from_normalized
from ..color.types import RGB, ColorStop, Gradient
from ..device.capabilities import RGB_ONLY, SegmentCapabilities
from ..device.errors import InvalidIntentError
from ..device.models import Device

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE_MODEL = TemperatureModel()


class ColorMode(Enum):
    SOLID = "solid"
    PER_LED = "per_led"


@dataclass
class ColorIntent:
    device_id: str
    segment_id: int = 0
    mode: ColorMode = ColorMode.SOLID
    solo_color: Optional[RGB] = None
    per_led_frame: Optional[List[RGB]] = None
    cct: Optional[int] = None
    brightness: Optional[int] = None
    power: Optional[bool] = None

    def __post_init__(self):
        if self.cct is not None:
            self.cct = max(0, min(255, int(self.cct)))
        if self.brightness is not None:
            self.brightness = max(0, min(255, int(self.brightness)))

    @classmethod
    def power_only(cls, device_id: str, on: bool) -> "ColorIntent":
        return cls(device_id=device_id, power=bool(on))

    @classmethod
    def brightness_only(cls, device_id: str, brightness: int) -> "ColorIntent":
        return cls(device_id=device_id, brightness=brightness)

    @property
    def has_color(self) -> bool:
        if self.mode == ColorMode.PER_LED:
            return bool(self.per_led_frame)
        return self.solo_color is not None

    @property
    def is_brightness_only(self) -> bool:
        return self.brightness is not None and self.power is None and self.cct is None and not self.has_color

    def validate(self, led_count: Optional[int] = None) -> None:
        """Raise InvalidIntentError if the intent breaks its own invariants."""
        if self.mode == ColorMode.PER_LED:
            if not self.per_led_frame:
                raise InvalidIntentError("per-LED intent without a frame")
            if led_count is not None and len(self.per_led_frame) != led_count:
                raise InvalidIntentError(
                    f"frame has {len(self.per_led_frame)} LEDs, segment {self.segment_id} has {led_count}"
                )
        elif self.solo_color is None and self.cct is None and self.brightness is None and self.power is None:
            raise InvalidIntentError("intent carries nothing to write")


def uniform_temperature(temperatures: Optional[Sequence[Optional[float]]], stop_count: int) -> Optional[float]:
    """The single temperature shared by every stop, or None if they differ or any is unset."""
    if not temperatures or len(temperatures) != stop_count:
        return None
    values = set(temperatures)
    if len(values) != 1:
        return None
    return values.pop()


def render_temperatures(
    gradient: Gradient,
    temperatures: Sequence[Optional[float]],
    model: TemperatureModel,
) -> Gradient:
    """Stops with a temperature take its visible RGB; the rest keep their color.

    `temperatures` lines up with `gradient.stops` (position order).
    """
    stops = []
    for i, stop in enumerate(gradient.stops):
        t = temperatures[i] if i < len(temperatures) else None
        if t is None:
            stops.append(stop)
        else:
            stops.append(ColorStop(stop.position, model.visible_rgb(t), stop.id))
    return Gradient(stops, name=gradient.name)


def build_intent(
    device: Device,
    segment_id: int,
    gradient: Gradient,
    cct: Optional[int] = None,
    temperatures: Optional[Sequence[Optional[float]]] = None,
    brightness: Optional[int] = None,
    capabilities: SegmentCapabilities = RGB_ONLY,
    temperature_model: Optional[TemperatureModel] = None,
) -> ColorIntent:
    """
    Choose the cheapest intent that renders `gradient` on a segment.

    - one stop, no cct        -> SOLID
    - one stop, cct           -> PER_LED uniform frame carrying cct
    - several stops           -> PER_LED sampled frame; cct only when every
                                 stop shares exactly one temperature

    cct is dropped when the segment has no CCT channel. Stops that carry a
    temperature are then drawn in RGB from the temperature model, floored
    at the minimum visible brightness.
    """
    if cct is None:
        shared = uniform_temperature(temperatures, len(gradient))
        if shared is not None:
            cct = eight_bit_from_normalized(shared)

    if not capabilities.supports_cct:
        if cct is not None:
            logger.debug("[Intent] %s segment %d has no CCT channel, dropping cct=%d", device.id, segment_id, cct)
            cct = None
        if temperatures:
            gradient = render_temperatures(gradient, temperatures, temperature_model or DEFAULT_TEMPERATURE_MODEL)

    if gradient.is_solid and cct is None:
        return ColorIntent(
            device_id=device.id,
            segment_id=segment_id,
            mode=ColorMode.SOLID,
            solo_color=gradient.stops[0].color,
            brightness=brightness,
        )

    led_count = device.segment_length(segment_id)
    if not led_count:
        raise InvalidIntentError(f"unknown LED count for {device.id} segment {segment_id}", device.display_name)

    return ColorIntent(
        device_id=device.id,
        segment_id=segment_id,
        mode=ColorMode.PER_LED,
        per_led_frame=sample_frame(gradient, led_count),
        cct=cct,
        brightness=brightness,
    )
