"""Color temperature: normalized CCT value <-> RGB.

Forward mapping is exact piecewise-linear interpolation across three anchors
(warm, neutral, cool). The inverse is a lossy nearest-anchor estimate used only
to repopulate UI state from a color; forward -> inverse does not round-trip.
"""

import math
from typing import Optional, Tuple

from .gradient import lerp_color
from .types import RGB, clamp_channel

WARM_ANCHOR: RGB = (255, 169, 87)       # ~2700K
NEUTRAL_ANCHOR: RGB = (255, 209, 163)   # ~4000K
COOL_ANCHOR: RGB = (255, 249, 253)      # ~6500K

# Device CCT values >= this are Kelvin, below are 0-255 relative
KELVIN_THRESHOLD = 1000
KELVIN_MIN = 1000.0
KELVIN_MAX = 20000.0


def kelvin_to_rgb(kelvin: float) -> RGB:
    """Blackbody approximation (Tanner Helland fit), valid 1000K-40000K."""
    temp = max(1000.0, min(40000.0, kelvin)) / 100.0

    if temp <= 66:
        red = 255.0
        green = 99.4708025861 * math.log(temp) - 161.1195681661
    else:
        red = 329.698727446 * ((temp - 60) ** -0.1332047592)
        green = 288.1221695283 * ((temp - 60) ** -0.0755148492)

    if temp >= 66:
        blue = 255.0
    elif temp <= 19:
        blue = 0.0
    else:
        blue = 138.5177312231 * math.log(temp - 10) - 305.0447927307

    return (clamp_channel(red), clamp_channel(green), clamp_channel(blue))


def kelvin_from_normalized(normalized: float) -> int:
    clamped = max(0.0, min(1.0, normalized))
    return int(round(KELVIN_MIN + clamped * (KELVIN_MAX - KELVIN_MIN)))


def eight_bit_from_normalized(normalized: float) -> int:
    clamped = max(0.0, min(1.0, normalized))
    return int(round(clamped * 255.0))


def normalized_from_device_cct(cct: Optional[int]) -> Optional[float]:
    """Device-reported CCT (Kelvin or 0-255) -> [0, 1]."""
    if cct is None:
        return None
    if cct >= KELVIN_THRESHOLD:
        value = max(KELVIN_MIN, min(KELVIN_MAX, float(cct)))
        return (value - KELVIN_MIN) / (KELVIN_MAX - KELVIN_MIN)
    return max(0, min(255, cct)) / 255.0


def _distance(a: RGB, b: RGB) -> float:
    """Euclidean distance in normalized (0-1) RGB space."""
    return math.sqrt(sum(((a[i] - b[i]) / 255.0) ** 2 for i in range(3)))


def ensure_min_brightness(rgb: RGB, floor: float = 0.3) -> RGB:
    """Rescale so the brightest channel reaches `floor` of full scale.

    Devices without a dedicated CCT channel render a dim derived triple as
    black; this keeps it visible while preserving hue.
    """
    target = floor * 255.0
    peak = max(rgb)
    if peak >= target:
        return rgb
    if peak == 0:
        level = clamp_channel(target)
        return (level, level, level)
    scale = target / peak
    return (clamp_channel(rgb[0] * scale), clamp_channel(rgb[1] * scale), clamp_channel(rgb[2] * scale))


class TemperatureModel:
    """Three-anchor mapping between normalized temperature and RGB."""

    def __init__(
        self,
        warm: RGB = WARM_ANCHOR,
        neutral: RGB = NEUTRAL_ANCHOR,
        cool: RGB = COOL_ANCHOR,
        min_visible_brightness: float = 0.3,
    ):
        self.warm = tuple(warm)
        self.neutral = tuple(neutral)
        self.cool = tuple(cool)
        self.min_visible_brightness = min_visible_brightness

    @classmethod
    def from_kelvin_bounds(cls, min_kelvin: float, max_kelvin: float, **kwargs) -> "TemperatureModel":
        """Anchors at the device's reported Kelvin range and its midpoint."""
        if min_kelvin >= max_kelvin:
            raise ValueError(f"min_kelvin ({min_kelvin}) must be < max_kelvin ({max_kelvin})")
        mid = (min_kelvin + max_kelvin) / 2.0
        return cls(kelvin_to_rgb(min_kelvin), kelvin_to_rgb(mid), kelvin_to_rgb(max_kelvin), **kwargs)

    @classmethod
    def from_config(cls, cfg) -> "TemperatureModel":
        if cfg.min_kelvin is not None and cfg.max_kelvin is not None:
            return cls.from_kelvin_bounds(cfg.min_kelvin, cfg.max_kelvin,
                                          min_visible_brightness=cfg.min_visible_brightness)
        return cls(cfg.warm_anchor, cfg.neutral_anchor, cfg.cool_anchor, cfg.min_visible_brightness)

    @property
    def anchors(self) -> Tuple[RGB, RGB, RGB]:
        return (self.warm, self.neutral, self.cool)

    def temperature_to_rgb(self, t: float) -> RGB:
        t = max(0.0, min(1.0, t))
        if t <= 0.5:
            return lerp_color(self.warm, self.neutral, t * 2.0)
        return lerp_color(self.neutral, self.cool, (t - 0.5) * 2.0)

    def rgb_to_approx_temperature(self, rgb: RGB) -> float:
        """Best-effort inverse. Ties go to the warmer anchor."""
        d_warm = _distance(rgb, self.warm)
        d_neutral = _distance(rgb, self.neutral)
        d_cool = _distance(rgb, self.cool)

        nearest = min(d_warm, d_neutral, d_cool)
        if nearest == d_warm:
            total = d_warm + d_neutral
            return 0.0 if total == 0 else 0.5 * (d_warm / total)
        if nearest == d_neutral:
            # The closer flanking anchor decides which half we are in
            if d_warm <= d_cool:
                return 0.5 - 0.5 * (d_neutral / (d_neutral + d_warm))
            return 0.5 + 0.5 * (d_neutral / (d_neutral + d_cool))
        total = d_cool + d_neutral
        return 1.0 if total == 0 else 1.0 - 0.5 * (d_cool / total)

    def visible_rgb(self, t: float) -> RGB:
        """Forward mapping with the minimum-visible-brightness floor applied."""
        return ensure_min_brightness(self.temperature_to_rgb(t), self.min_visible_brightness)

    def to_device_cct(self, t: float) -> int:
        return eight_bit_from_normalized(t)
