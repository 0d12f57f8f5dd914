"""
Device access - models, capability detection, HTTP client, errors.
"""

from .capabilities import RGB_ONLY, CapabilityDetector, SegmentCapabilities, parse_seglc
from .client import DeviceClient, build_pixel_bodies
from .errors import (
    DeviceError,
    DeviceTimeoutError,
    DeviceUnreachableError,
    ErrorType,
    HTTPStatusError,
    InvalidIntentError,
    InvalidResponseError,
    PresetTableFullError,
    classify_error,
    safe_call_async,
)
from .models import Device, DeviceInfo, DeviceSnapshot, DeviceState, SegmentState

__all__ = [
    "RGB_ONLY",
    "CapabilityDetector",
    "SegmentCapabilities",
    "parse_seglc",
    "DeviceClient",
    "build_pixel_bodies",
    "DeviceError",
    "DeviceTimeoutError",
    "DeviceUnreachableError",
    "ErrorType",
    "HTTPStatusError",
    "InvalidIntentError",
    "InvalidResponseError",
    "PresetTableFullError",
    "classify_error",
    "safe_call_async",
    "Device",
    "DeviceInfo",
    "DeviceSnapshot",
    "DeviceState",
    "SegmentState",
]
