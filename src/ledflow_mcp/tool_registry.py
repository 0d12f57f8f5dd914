"""MCP Tool Registry - tool definitions, handler mapping, and server factory.

This module contains:
- TOOLS_ESSENTIAL / TOOLS_STANDARD: Tool schema definitions (tiered)
- HANDLERS: Maps tool names -> handler functions
- get_active_tools(): Returns tools based on LEDFLOW_TOOL_MODE env var
- create_server(): Server factory
"""

import json
import logging
import os

from mcp.server import Server
from mcp.types import Tool, TextContent

from .handlers import (
    # Device operations
    handle_apply_gradient, handle_start_transition, handle_cancel_transition,
    handle_set_power, handle_get_power, handle_refresh_device,
    # Presets
    handle_save_color_preset, handle_list_presets, handle_apply_preset,
    handle_delete_preset, handle_resync_presets,
)

logger = logging.getLogger(__name__)


# ============================================================
# Tool Registry - Tiered System
# ============================================================
# LEDFLOW_TOOL_MODE environment variable controls exposure:
#   - "minimal": Only essential tools
#   - "full": Essential + standard (default)

LEDFLOW_TOOL_MODE = os.environ.get("LEDFLOW_TOOL_MODE", "full").lower()

_DEVICE_ID = {
    "type": "string",
    "description": "Device id from config. Optional when exactly one device is configured.",
}

_STOPS = {
    "type": "array",
    "description": (
        "Gradient stops: either hex colors ['FF0000', '0000FF'] spread evenly, "
        "or objects {position: 0-1, color: 'RRGGBB'}. One stop = solid color."
    ),
    "items": {
        "anyOf": [
            {"type": "string"},
            {
                "type": "object",
                "properties": {
                    "position": {"type": "number", "minimum": 0, "maximum": 1},
                    "color": {"type": "string"},
                },
                "required": ["position", "color"],
            },
        ]
    },
}

_BRIGHTNESS = {"type": "integer", "minimum": 0, "maximum": 255}

# ============================================================
# ESSENTIAL TOOLS - Always visible
# ============================================================
TOOLS_ESSENTIAL = [
    Tool(
        name="apply_gradient",
        description="Show a gradient or solid color on a device segment",
        inputSchema={
            "type": "object",
            "properties": {
                "device_id": _DEVICE_ID,
                "stops": _STOPS,
                "temperatures": {
                    "type": "array",
                    "items": {"type": ["number", "null"]},
                    "description": "Optional per-stop color temperature 0 (warm) - 1 (cool)",
                },
                "brightness": _BRIGHTNESS,
                "segment_id": {"type": "integer", "minimum": 0},
            },
            "required": ["stops"],
        },
    ),
    Tool(
        name="set_power",
        description="Turn a device on or off. The new state shows immediately and is reconciled with the device.",
        inputSchema={
            "type": "object",
            "properties": {"device_id": _DEVICE_ID, "on": {"type": "boolean"}},
            "required": ["on"],
        },
    ),
    Tool(
        name="get_power",
        description="Current power state as presented (optimistic value while a change is in flight)",
        inputSchema={
            "type": "object",
            "properties": {
                "device_id": _DEVICE_ID,
                "refresh": {"type": "boolean", "description": "Fetch device state first"},
            },
        },
    ),
    Tool(
        name="list_presets",
        description="List saved presets (color, effect, transition)",
        inputSchema={
            "type": "object",
            "properties": {
                "kind": {"type": "string", "enum": ["color", "effect", "transition"]},
                "device_id": _DEVICE_ID,
            },
        },
    ),
    Tool(
        name="apply_preset",
        description="Apply a saved preset to a device",
        inputSchema={
            "type": "object",
            "properties": {"preset_id": {"type": "string"}, "device_id": _DEVICE_ID},
            "required": ["preset_id"],
        },
    ),
]

# ============================================================
# STANDARD TOOLS
# ============================================================
TOOLS_STANDARD = [
    Tool(
        name="start_transition",
        description="Blend gradient A into gradient B over a duration (0.5s - 2h). Starting again replaces a running transition.",
        inputSchema={
            "type": "object",
            "properties": {
                "device_id": _DEVICE_ID,
                "from_stops": _STOPS,
                "to_stops": _STOPS,
                "brightness_a": _BRIGHTNESS,
                "brightness_b": _BRIGHTNESS,
                "duration_seconds": {"type": "number", "minimum": 0.5, "maximum": 7200},
            },
        },
    ),
    Tool(
        name="cancel_transition",
        description="Stop a running transition and restore gradient A. A finished transition is left on B.",
        inputSchema={"type": "object", "properties": {"device_id": _DEVICE_ID}},
    ),
    Tool(
        name="save_color_preset",
        description="Save a color preset. Saved locally at once, copied to the device in the background.",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "stops": _STOPS,
                "brightness": _BRIGHTNESS,
                "temperature": {"type": "number", "minimum": 0, "maximum": 1},
                "device_id": _DEVICE_ID,
            },
            "required": ["name", "stops"],
        },
    ),
    Tool(
        name="delete_preset",
        description="Delete a preset locally (the device copy is kept)",
        inputSchema={
            "type": "object",
            "properties": {"preset_id": {"type": "string"}},
            "required": ["preset_id"],
        },
    ),
    Tool(
        name="resync_presets",
        description="Copy every preset not yet stored on the device",
        inputSchema={"type": "object", "properties": {"device_id": _DEVICE_ID}},
    ),
    Tool(
        name="refresh_device",
        description="Fetch device state and capabilities",
        inputSchema={"type": "object", "properties": {"device_id": _DEVICE_ID}},
    ),
]


def get_active_tools():
    """Tools exposed for the configured LEDFLOW_TOOL_MODE."""
    if LEDFLOW_TOOL_MODE == "minimal":
        return TOOLS_ESSENTIAL
    return TOOLS_ESSENTIAL + TOOLS_STANDARD


TOOLS = get_active_tools()


# ============================================================
# Tool Handlers - Maps tool names to handler functions
# ============================================================
HANDLERS = {
    # Essential
    "apply_gradient": handle_apply_gradient,
    "set_power": handle_set_power,
    "get_power": handle_get_power,
    "list_presets": handle_list_presets,
    "apply_preset": handle_apply_preset,
    # Standard
    "start_transition": handle_start_transition,
    "cancel_transition": handle_cancel_transition,
    "save_color_preset": handle_save_color_preset,
    "delete_preset": handle_delete_preset,
    "resync_presets": handle_resync_presets,
    "refresh_device": handle_refresh_device,
}


def create_server() -> Server:
    """Create and configure the MCP server."""
    server = Server("ledflow-mcp")
    logger.info("[Server] Tool mode: %s (%d tools)", LEDFLOW_TOOL_MODE, len(TOOLS))

    @server.list_tools()
    async def list_tools():
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict | None):
        handler = HANDLERS.get(name)
        if not handler:
            return [TextContent(type="text", text=json.dumps({
                "error": f"Unknown tool: {name}",
                "available": list(HANDLERS.keys()),
            }))]
        return await handler(arguments or {})

    return server
