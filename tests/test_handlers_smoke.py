"""Smoke tests for the MCP handlers and tool registry.

Handlers run against a LightingEngine backed by the in-memory controller;
they confirm the JSON shape and that error paths answer instead of raising.
Deep functional testing lives in the engine test files.
"""

import json

import pytest

from ledflow_mcp import server
from ledflow_mcp.handlers import (
    handle_apply_gradient,
    handle_apply_preset,
    handle_cancel_transition,
    handle_delete_preset,
    handle_get_power,
    handle_list_presets,
    handle_refresh_device,
    handle_resync_presets,
    handle_save_color_preset,
    handle_set_power,
    handle_start_transition,
)
from ledflow_mcp.handlers.device_ops import parse_stops
from ledflow_mcp.tool_registry import HANDLERS, TOOLS_ESSENTIAL, TOOLS_STANDARD, create_server

from conftest import BLUE, RED


def parse_handler_result(result):
    """Extract JSON from handler TextContent result list."""
    assert isinstance(result, list)
    assert len(result) == 1
    return json.loads(result[0].text)


@pytest.fixture
def installed(engine):
    server._set_engine(engine)
    yield engine
    server._set_engine(None)


class TestRegistry:

    def test_every_tool_has_a_handler(self):
        names = {tool.name for tool in TOOLS_ESSENTIAL + TOOLS_STANDARD}
        assert names == set(HANDLERS)

    def test_create_server(self):
        assert create_server().name == "ledflow-mcp"


class TestParseStops:

    def test_hex_list(self):
        gradient = parse_stops(["FF0000", "#0000ff"])
        assert [s.color for s in gradient.stops] == [RED, BLUE]

    def test_objects(self):
        gradient = parse_stops([{"position": 1, "color": "0000FF"}, {"position": 0, "color": [255, 0, 0]}])
        assert [s.color for s in gradient.stops] == [RED, BLUE]

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            parse_stops([])

    def test_none(self):
        assert parse_stops(None) is None


class TestUninitialized:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("handler", [
        handle_apply_gradient, handle_start_transition, handle_cancel_transition,
        handle_set_power, handle_get_power, handle_refresh_device,
        handle_save_color_preset, handle_list_presets, handle_apply_preset,
        handle_delete_preset, handle_resync_presets,
    ])
    async def test_reports_engine_missing(self, handler):
        server._set_engine(None)
        data = parse_handler_result(await handler({}))
        assert data["error"] == "Engine not initialized"


class TestDeviceHandlers:

    @pytest.mark.asyncio
    async def test_apply_gradient(self, installed, fake_client):
        data = parse_handler_result(await handle_apply_gradient({"stops": ["FF0000", "0000FF"], "brightness": 60}))
        assert data["success"] is True
        assert data["device_id"] == "desk"
        assert fake_client.bodies[-1]["bri"] == 60

    @pytest.mark.asyncio
    async def test_apply_gradient_bad_color(self, installed):
        data = parse_handler_result(await handle_apply_gradient({"stops": ["XYZ"]}))
        assert "error" in data

    @pytest.mark.asyncio
    async def test_unknown_device(self, installed):
        data = parse_handler_result(await handle_apply_gradient({"device_id": "garage", "stops": ["FF0000"]}))
        assert "garage" in data["error"]

    @pytest.mark.asyncio
    async def test_transition_then_cancel(self, installed):
        data = parse_handler_result(await handle_start_transition({
            "from_stops": ["FF0000"], "to_stops": ["0000FF"], "duration_seconds": 10,
        }))
        assert data["success"] is True
        assert data["total_frames"] == 201

        data = parse_handler_result(await handle_cancel_transition({}))
        assert data["success"] is True

    @pytest.mark.asyncio
    async def test_power_round_trip(self, installed, fake_client):
        data = parse_handler_result(await handle_set_power({"on": False}))
        assert data == {"success": True, "device_id": "desk", "on": False}

        data = parse_handler_result(await handle_get_power({}))
        assert data["on"] is False
        assert data["pending"] is False

    @pytest.mark.asyncio
    async def test_set_power_requires_on(self, installed):
        assert "error" in parse_handler_result(await handle_set_power({}))

    @pytest.mark.asyncio
    async def test_refresh(self, installed):
        data = parse_handler_result(await handle_refresh_device({}))
        assert data["success"] is True
        assert data["capabilities"] == "RGB"


class TestPresetHandlers:

    @pytest.mark.asyncio
    async def test_save_list_apply_delete(self, installed):
        saved = parse_handler_result(await handle_save_color_preset({"name": "Fire", "stops": ["FF4000"]}))
        assert saved["success"] is True
        preset_id = saved["preset_id"]
        await installed.preset_sync.drain()

        listed = parse_handler_result(await handle_list_presets({}))
        assert listed["count"] == 1
        assert listed["presets"][0]["synced"] is True

        applied = parse_handler_result(await handle_apply_preset({"preset_id": preset_id}))
        assert applied["success"] is True

        deleted = parse_handler_result(await handle_delete_preset({"preset_id": preset_id}))
        assert deleted["success"] is True

    @pytest.mark.asyncio
    async def test_list_unknown_kind(self, installed):
        data = parse_handler_result(await handle_list_presets({"kind": "sparkle"}))
        assert "color" in data["valid"]

    @pytest.mark.asyncio
    async def test_resync(self, installed, fake_client):
        fake_client.offline = True
        await handle_save_color_preset({"name": "Ice", "stops": ["A0E0FF"]})
        await installed.preset_sync.drain()
        fake_client.offline = False

        data = parse_handler_result(await handle_resync_presets({}))
        assert data == {"device_id": "desk", "synced": 1, "unsynced_remaining": 0}
