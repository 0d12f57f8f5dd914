"""Gradient sampling: gradient + position -> color, gradient + LED count -> frame.

Pure functions. Channels are interpolated linearly and rounded to the
nearest integer, so identical inputs always produce identical output.
"""

from typing import List

from .types import RGB, Gradient, clamp_channel


def lerp_color(color1: RGB, color2: RGB, ratio: float) -> RGB:
    """Linear blend of two RGB colors. ratio 0=color1, 1=color2."""
    ratio = max(0.0, min(1.0, ratio))
    return (
        clamp_channel(color1[0] + (color2[0] - color1[0]) * ratio),
        clamp_channel(color1[1] + (color2[1] - color1[1]) * ratio),
        clamp_channel(color1[2] + (color2[2] - color1[2]) * ratio),
    )


def sample_color(gradient: Gradient, t: float) -> RGB:
    """Color of the gradient at position t (clamped to [0, 1])."""
    stops = gradient.stops
    t = max(0.0, min(1.0, t))
    first, last = stops[0], stops[-1]
    if t <= first.position:
        return first.color
    if t >= last.position:
        return last.color

    for lower, upper in zip(stops, stops[1:]):
        if lower.position <= t <= upper.position:
            span = upper.position - lower.position
            if span <= 0:
                return upper.color
            return lerp_color(lower.color, upper.color, (t - lower.position) / span)

    # Unreachable for a sorted gradient; keeps the function total
    return last.color


def led_position(index: int, led_count: int) -> float:
    """Normalized position of LED `index` on a strip of `led_count` LEDs."""
    if led_count <= 1:
        return 0.0
    return index / (led_count - 1)


def sample_frame(gradient: Gradient, led_count: int) -> List[RGB]:
    """One color per LED across the strip."""
    if led_count <= 0:
        return []
    if gradient.is_solid:
        return [gradient.stops[0].color] * led_count
    return [sample_color(gradient, led_position(i, led_count)) for i in range(led_count)]


def blend_frames(frame_a: List[RGB], frame_b: List[RGB], ratio: float) -> List[RGB]:
    """Per-LED blend of two equally sized frames."""
    if len(frame_a) != len(frame_b):
        raise ValueError(f"frame sizes differ: {len(frame_a)} != {len(frame_b)}")
    return [lerp_color(a, b, ratio) for a, b in zip(frame_a, frame_b)]


def apply_gamma(frame: List[RGB], gamma: float = 2.2) -> List[RGB]:
    """Perceptual correction. gamma 1.0 is a no-op."""
    if gamma == 1.0:
        return list(frame)
    inv = 1.0 / max(0.0001, gamma)
    return [tuple(clamp_channel(255.0 * (c / 255.0) ** inv) for c in color) for color in frame]
