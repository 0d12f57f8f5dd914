"""
Color engine - intents, dispatch, throttling, transitions, optimistic state, preset sync.
"""

from .facade import LightingEngine, as_gradient
from .intent import ColorIntent, ColorMode, build_intent
from .optimistic import OptimisticStateCoordinator
from .pipeline import ColorPipeline, encode_intent
from .preset_sync import PresetSyncCoordinator, lowest_free_id
from .throttle import EditPhase, StreamThrottler
from .transition import TransitionEngine, TransitionRun, TransitionSpec, TransitionState, frame_count

__all__ = [
    "LightingEngine",
    "as_gradient",
    "ColorIntent",
    "ColorMode",
    "build_intent",
    "OptimisticStateCoordinator",
    "ColorPipeline",
    "encode_intent",
    "PresetSyncCoordinator",
    "lowest_free_id",
    "EditPhase",
    "StreamThrottler",
    "TransitionEngine",
    "TransitionRun",
    "TransitionSpec",
    "TransitionState",
    "frame_count",
]
