"""
Device errors - classification of failures talking to a controller.

Provides:
- Specific exception types for the failure modes of the device HTTP API
- Error classification (transient vs permanent vs unsupported)
- safe_call_async for paths that must log and swallow (background sync)

Live color edits are never retried: a stale retry could overwrite a newer
edit. Callers get the exception and decide what to show.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorType(Enum):
    """Classification of error types."""
    TRANSIENT = "transient"      # Temporary, next interaction resends
    NETWORK = "network"          # Timeout / unreachable, transient
    UNSUPPORTED = "unsupported"  # Device answered but lacks the feature or fields
    PERMANENT = "permanent"      # Won't be fixed by trying again
    CONFIG = "config"            # Bad local configuration


class DeviceError(Exception):
    """Base class for device API failures."""
    error_type: ErrorType = ErrorType.TRANSIENT

    def __init__(self, message: str, device_name: Optional[str] = None):
        super().__init__(message)
        self.device_name = device_name

    @property
    def retryable(self) -> bool:
        return self.error_type in (ErrorType.TRANSIENT, ErrorType.NETWORK)


class DeviceTimeoutError(DeviceError):
    """Request timed out. Device may be busy or network is slow."""
    error_type = ErrorType.NETWORK


class DeviceUnreachableError(DeviceError):
    """Could not connect to the device."""
    error_type = ErrorType.NETWORK


class HTTPStatusError(DeviceError):
    """Device answered with a non-2xx status."""

    def __init__(self, status_code: int, device_name: Optional[str] = None):
        super().__init__(f"HTTP {status_code}", device_name)
        self.status_code = status_code
        self.error_type = ErrorType.TRANSIENT if status_code >= 500 or status_code == 429 else ErrorType.PERMANENT


class InvalidResponseError(DeviceError):
    """Malformed response or missing expected fields - gates the feature off."""
    error_type = ErrorType.UNSUPPORTED


class PresetTableFullError(DeviceError):
    """No free preset id in the device's valid range."""
    error_type = ErrorType.PERMANENT


class InvalidIntentError(DeviceError):
    """Intent violates its own invariants (e.g. frame length != segment length)."""
    error_type = ErrorType.CONFIG


def from_httpx(error: Exception, device_name: Optional[str] = None) -> DeviceError:
    """Map an httpx exception onto the device error taxonomy."""
    if isinstance(error, DeviceError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return DeviceTimeoutError(f"timeout talking to {device_name or 'device'}", device_name)
    if isinstance(error, (httpx.ConnectError, httpx.NetworkError)):
        return DeviceUnreachableError(f"unable to reach {device_name or 'device'}: {error}", device_name)
    if isinstance(error, httpx.HTTPStatusError):
        return HTTPStatusError(error.response.status_code, device_name)
    if isinstance(error, (httpx.DecodingError, ValueError, KeyError, TypeError)):
        return InvalidResponseError(f"invalid response: {error}", device_name)
    if isinstance(error, httpx.HTTPError):
        return DeviceError(f"network error: {error}", device_name)
    return DeviceError(str(error), device_name)


def classify_error(error: Exception) -> ErrorType:
    """
    Classify an exception into an error type.

    Device errors carry their own type; anything else is classified by
    exception class first, then by message keywords.
    """
    if isinstance(error, DeviceError):
        return error.error_type
    if isinstance(error, httpx.HTTPError):
        return from_httpx(error).error_type

    error_str = str(error).lower()
    if any(x in error_str for x in ["network", "connection", "timeout", "unreachable"]):
        return ErrorType.NETWORK
    if any(x in error_str for x in ["unsupported", "missing field", "malformed"]):
        return ErrorType.UNSUPPORTED
    if any(x in error_str for x in ["config", "invalid"]):
        return ErrorType.CONFIG
    return ErrorType.TRANSIENT


async def safe_call_async(
    func: Callable[[], Awaitable[T]],
    default: Optional[T] = None,
    log_error: bool = True,
    context: str = "SafeCall",
) -> Optional[Any]:
    """
    Call an async function, returning default on error.

    Only for work whose failure must stay invisible to the user
    (background preset sync). Interactive paths propagate.
    """
    try:
        return await func()
    except Exception as e:
        if log_error:
            logger.warning("[%s] %s (%s)", context, e, classify_error(e).value)
        return default
