"""
Shared test fixtures for the ledflow-mcp test suite.

FakeDeviceClient subclasses the real DeviceClient and replaces only the
HTTP round trip, so payload encoding, chunking and id validation are the
production code paths. It records every request and can be switched
offline to simulate an unreachable controller.
"""

import asyncio
import copy
from typing import Any, Dict, List, Optional

import pytest

from ledflow_mcp.color.types import ColorStop, Gradient
from ledflow_mcp.config import DeviceEntry, EngineConfig, NetworkConfig, StorageConfig
from ledflow_mcp.device.client import DeviceClient
from ledflow_mcp.device.errors import DeviceUnreachableError
from ledflow_mcp.device.models import Device
from ledflow_mcp.engine.facade import LightingEngine
from ledflow_mcp.storage.kv_store import KeyValueStore


RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)


# ---------------------------------------------------------------------------
# Plain factories
# ---------------------------------------------------------------------------

def make_device(device_id: str = "desk", led_count: int = 10, host: str = "192.168.1.50") -> Device:
    return Device(id=device_id, host=host, name=device_id.title(), segment_lengths=[led_count])


def make_gradient(*colors) -> Gradient:
    """Evenly spaced gradient; red->blue when called with no colors."""
    return Gradient.from_colors(list(colors) if colors else [RED, BLUE])


def make_state_json(on: bool = True, bri: int = 128, led_count: int = 10, seglc: Optional[List[int]] = None) -> Dict[str, Any]:
    """A `GET /json` response body."""
    leds: Dict[str, Any] = {"count": led_count}
    if seglc is not None:
        leds["seglc"] = seglc
    return {
        "state": {
            "on": on,
            "bri": bri,
            "ps": -1,
            "seg": [{
                "id": 0, "start": 0, "stop": led_count, "len": led_count,
                "on": True, "bri": 255, "col": [[255, 160, 0], [0, 0, 0], [0, 0, 0]],
                "cct": 127, "fx": 0, "sx": 128, "ix": 128, "pal": 0,
            }],
        },
        "info": {"name": "WLED", "ver": "0.14.0", "mac": "aabbccddeeff", "leds": leds},
    }


async def fast_sleep(delay: float) -> None:
    """Stand-in for asyncio.sleep: yields to the loop without waiting."""
    await asyncio.sleep(0)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDeviceClient(DeviceClient):
    """DeviceClient whose HTTP layer is an in-memory controller."""

    def __init__(self, network: Optional[NetworkConfig] = None, state_json: Optional[Dict[str, Any]] = None):
        super().__init__(network)
        self.requests: List[tuple] = []
        self.bodies: List[Dict[str, Any]] = []
        self.preset_table: Dict[int, Dict[str, Any]] = {}
        self.state_json = state_json if state_json is not None else make_state_json()
        self.offline = False
        self.post_hook = None

    async def _request(self, device, method, path, body=None):
        if self.offline:
            raise DeviceUnreachableError(f"unable to reach {device.display_name}", device.display_name)
        self.requests.append((method, path, copy.deepcopy(body)))
        if method == "GET" and path == "/json":
            return copy.deepcopy(self.state_json)
        if method == "GET" and path == "/presets.json":
            table = {"0": {}}
            table.update({str(k): v for k, v in self.preset_table.items()})
            return table
        self.bodies.append(copy.deepcopy(body))
        if "psave" in body:
            stored = {k: v for k, v in body.items() if k != "psave"}
            self.preset_table[body["psave"]] = stored
        if self.post_hook is not None:
            self.post_hook(body)
        # Yield like a real network call would
        await asyncio.sleep(0)
        return {"success": True}

    def frame_bodies(self) -> List[Dict[str, Any]]:
        """Posted bodies that carry per-LED data."""
        return [b for b in self.bodies if b.get("seg") and "i" in b["seg"][0]]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def device():
    return make_device()


@pytest.fixture
def fake_client():
    return FakeDeviceClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine_config(tmp_path):
    """Config with one 10-LED device and storage under tmp_path."""
    return EngineConfig(
        storage=StorageConfig(root=str(tmp_path / "state")),
        devices=[DeviceEntry(id="desk", host="192.168.1.50", name="Desk", segment_lengths=[10])],
    )


@pytest.fixture
def engine(engine_config, fake_client, clock):
    """LightingEngine over the fake client, fake clock and a no-wait sleep."""
    store = KeyValueStore(engine_config.storage.root)
    return LightingEngine(engine_config, fake_client, store, clock=clock, sleep=fast_sleep)


@pytest.fixture
def red_blue():
    return Gradient([ColorStop(0.0, RED), ColorStop(1.0, BLUE)])
