"""
Device client - JSON-over-HTTP access to a segmented LED controller.

Endpoints used:
- GET  /json          full state + info (reconciliation, capability detection)
- POST /json/state    state changes, per-LED uploads, preset save/apply
- GET  /presets.json  the device's preset table

One pooled httpx.AsyncClient is shared by every device and created lazily.
All failures surface as DeviceError subclasses; nothing here retries.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..color.types import RGB, to_hex
from ..config import NetworkConfig
from .errors import DeviceError, InvalidIntentError, InvalidResponseError, from_httpx
from .models import Device, DeviceSnapshot

logger = logging.getLogger(__name__)

PRESET_ID_MIN = 1
PRESET_ID_MAX = 250
PLAYLIST_ID_MIN = 1
PLAYLIST_ID_MAX = 16


def build_pixel_bodies(
    segment_id: int,
    frame: Sequence[RGB],
    chunk_size: int = 256,
    start_index: int = 0,
    first_extra: Optional[Dict[str, Any]] = None,
    segment_extra: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """
    Split a per-LED frame into POST bodies of at most `chunk_size` LEDs.

    Each body addresses the segment with {"i": [start, "RRGGBB", ...]}.
    `first_extra` (top-level keys such as on/bri) and `segment_extra`
    (segment keys such as cct) ride on the first chunk only.
    """
    if not frame:
        return []
    hex_colors = [to_hex(c) for c in frame]
    bodies = []
    for offset in range(0, len(hex_colors), max(1, chunk_size)):
        chunk = hex_colors[offset:offset + chunk_size]
        seg: Dict[str, Any] = {"id": segment_id, "i": [start_index + offset] + chunk}
        body: Dict[str, Any] = {}
        if offset == 0:
            if first_extra:
                body.update(first_extra)
            if segment_extra:
                seg.update(segment_extra)
        body["seg"] = [seg]
        bodies.append(body)
    return bodies


class DeviceClient:
    """Async HTTP client for the controller JSON API."""

    def __init__(self, network: Optional[NetworkConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            network: Timeouts and chunk size (defaults if None)
            transport: Custom httpx transport (tests inject httpx.MockTransport)
        """
        self.network = network or NetworkConfig()
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the pooled HTTP client."""
        if self._http is None or self._http.is_closed:
            timeout = httpx.Timeout(self.network.request_timeout, connect=self.network.connect_timeout)
            self._http = httpx.AsyncClient(
                timeout=timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._http

    async def aclose(self) -> None:
        """Close the HTTP client. Call on shutdown."""
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None

    async def _request(self, device: Device, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{device.base_url}{path}"
        try:
            response = await self._get_client().request(method, url, json=body)
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()
        except DeviceError:
            raise
        except Exception as e:
            error = from_httpx(e, device.display_name)
            logger.debug("[DeviceClient] %s %s failed: %s", method, url, error)
            raise error from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_state(self, device: Device) -> DeviceSnapshot:
        """Fetch and parse `GET /json`."""
        data = await self._request(device, "GET", "/json")
        return DeviceSnapshot.from_json(data)

    async def get_presets(self, device: Device) -> Dict[int, Dict[str, Any]]:
        """Preset table keyed by id. Slot 0 (the device's placeholder) is skipped."""
        data = await self._request(device, "GET", "/presets.json")
        if not isinstance(data, dict):
            raise InvalidResponseError("presets.json is not an object", device.display_name)
        table = {}
        for key, value in data.items():
            try:
                preset_id = int(key)
            except (TypeError, ValueError):
                continue
            if preset_id <= 0 or not isinstance(value, dict) or not value:
                continue
            table[preset_id] = value
        return table

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def post_state(self, device: Device, body: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._request(device, "POST", "/json/state", body)
        return result if isinstance(result, dict) else {}

    async def post_pixels(
        self,
        device: Device,
        segment_id: int,
        frame: Sequence[RGB],
        first_extra: Optional[Dict[str, Any]] = None,
        segment_extra: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Upload a per-LED frame in chunks. Returns the number of requests sent."""
        bodies = build_pixel_bodies(segment_id, frame, self.network.pixel_chunk_size,
                                    first_extra=first_extra, segment_extra=segment_extra)
        for body in bodies:
            await self.post_state(device, body)
        return len(bodies)

    async def set_power(self, device: Device, on: bool) -> Dict[str, Any]:
        return await self.post_state(device, {"on": bool(on)})

    async def set_brightness(self, device: Device, brightness: int) -> Dict[str, Any]:
        return await self.post_state(device, {"bri": max(0, min(255, int(brightness)))})

    async def set_effect(
        self,
        device: Device,
        effect_id: int,
        segment_id: int = 0,
        speed: Optional[int] = None,
        intensity: Optional[int] = None,
        palette_id: Optional[int] = None,
        brightness: Optional[int] = None,
    ) -> Dict[str, Any]:
        seg: Dict[str, Any] = {"id": segment_id, "fx": int(effect_id)}
        if speed is not None:
            seg["sx"] = speed
        if intensity is not None:
            seg["ix"] = intensity
        if palette_id is not None:
            seg["pal"] = palette_id
        body: Dict[str, Any] = {"seg": [seg]}
        if brightness is not None:
            body["bri"] = brightness
        return await self.post_state(device, body)

    async def save_preset(self, device: Device, preset_id: int, name: str, state: Dict[str, Any]) -> Dict[str, Any]:
        """Store `state` under preset slot `preset_id` (1-250)."""
        if not PRESET_ID_MIN <= preset_id <= PRESET_ID_MAX:
            raise InvalidIntentError(f"preset id {preset_id} outside {PRESET_ID_MIN}-{PRESET_ID_MAX}", device.display_name)
        body = {"psave": preset_id, "n": name, "o": True}
        body.update(state)
        return await self.post_state(device, body)

    async def save_playlist(
        self,
        device: Device,
        playlist_id: int,
        name: str,
        preset_ids: List[int],
        durations: List[int],
        transitions: List[int],
        end_preset: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Store a playlist. Durations and transitions are in deciseconds."""
        if not PLAYLIST_ID_MIN <= playlist_id <= PLAYLIST_ID_MAX:
            raise InvalidIntentError(f"playlist id {playlist_id} outside {PLAYLIST_ID_MIN}-{PLAYLIST_ID_MAX}", device.display_name)
        playlist: Dict[str, Any] = {
            "ps": list(preset_ids),
            "dur": list(durations),
            "transition": list(transitions),
            "repeat": 1,
        }
        if end_preset is not None:
            playlist["end"] = end_preset
        return await self.post_state(device, {"psave": playlist_id, "n": name, "playlist": playlist})

    async def apply_preset(self, device: Device, preset_id: int, transition: Optional[int] = None) -> Dict[str, Any]:
        if not PRESET_ID_MIN <= preset_id <= PRESET_ID_MAX:
            raise InvalidIntentError(f"preset id {preset_id} outside {PRESET_ID_MIN}-{PRESET_ID_MAX}", device.display_name)
        body: Dict[str, Any] = {"ps": preset_id}
        if transition is not None:
            body["transition"] = transition
        return await self.post_state(device, body)
