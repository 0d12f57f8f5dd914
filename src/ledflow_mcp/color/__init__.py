"""
Color math - gradients and color temperature.

Submodules:
- types: RGB, ColorStop, Gradient, hex helpers
- gradient: sample_color, sample_frame, lerp_color, blend_frames, apply_gamma
- temperature: TemperatureModel, ensure_min_brightness, Kelvin helpers
"""

from .types import RGB, ColorStop, Gradient, from_hex, to_hex
from .gradient import apply_gamma, blend_frames, lerp_color, sample_color, sample_frame
from .temperature import (
    COOL_ANCHOR,
    NEUTRAL_ANCHOR,
    WARM_ANCHOR,
    TemperatureModel,
    ensure_min_brightness,
    normalized_from_device_cct,
)

__all__ = [
    "RGB",
    "ColorStop",
    "Gradient",
    "from_hex",
    "to_hex",
    "apply_gamma",
    "blend_frames",
    "lerp_color",
    "sample_color",
    "sample_frame",
    "TemperatureModel",
    "ensure_min_brightness",
    "normalized_from_device_cct",
    "WARM_ANCHOR",
    "NEUTRAL_ANCHOR",
    "COOL_ANCHOR",
]
