"""
LEDFlow MCP - color engine for networked addressable-LED controllers

Gradients and color temperature in, rate-limited device writes out.
Timed transitions, optimistic power state, local-first presets.
"""

__version__ = "0.1.0"

# Core exports
from .color import Gradient, ColorStop, TemperatureModel, sample_color, sample_frame
from .config import (
    EngineConfig,
    ConfigManager,
    get_config_manager,
    get_engine_config,
)
from .device import Device, DeviceClient, DeviceError
from .engine import (
    LightingEngine,
    ColorIntent,
    ColorMode,
    EditPhase,
    TransitionSpec,
    TransitionState,
)
from .events import Channel
from .storage import Preset, PresetKind, Scene

__all__ = [
    "Gradient",
    "ColorStop",
    "TemperatureModel",
    "sample_color",
    "sample_frame",
    "EngineConfig",
    "ConfigManager",
    "get_config_manager",
    "get_engine_config",
    "Device",
    "DeviceClient",
    "DeviceError",
    "LightingEngine",
    "ColorIntent",
    "ColorMode",
    "EditPhase",
    "TransitionSpec",
    "TransitionState",
    "Channel",
    "Preset",
    "PresetKind",
    "Scene",
]
