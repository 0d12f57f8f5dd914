"""Device operation handlers - color, transitions, power, refresh.

Handlers: apply_gradient, start_transition, cancel_transition, set_power,
get_power, refresh_device.
"""

import json
from typing import Any, Dict, List, Optional

from mcp.types import TextContent

from ..color.types import ColorStop, Gradient, from_hex


def _reply(payload: Dict[str, Any]) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


def _error(message: str, **extra) -> List[TextContent]:
    body = {"error": message}
    body.update(extra)
    return [TextContent(type="text", text=json.dumps(body))]


def _get_engine():
    # Late import: server.py imports the registry, which imports us
    from ..server import _get_engine as get
    return get()


def resolve_device(engine, arguments: dict):
    """Device named by arguments["device_id"], or the only configured device."""
    device_id = arguments.get("device_id")
    if device_id is None:
        if len(engine.devices) == 1:
            return next(iter(engine.devices.values()))
        raise KeyError("device_id is required when more than one device is configured")
    return engine.get_device(device_id)


def parse_stops(raw: Optional[list]) -> Optional[Gradient]:
    """
    Accept either hex strings (evenly spaced) or {"position", "color"} objects.
    """
    if raw is None:
        return None
    if not raw:
        raise ValueError("at least one stop is required")
    if all(isinstance(item, str) for item in raw):
        return Gradient.from_colors([from_hex(item) for item in raw])
    stops = []
    for item in raw:
        color = item["color"]
        rgb = from_hex(color) if isinstance(color, str) else tuple(color)
        stops.append(ColorStop(float(item["position"]), rgb))
    return Gradient(stops)


async def handle_apply_gradient(arguments: dict) -> List[TextContent]:
    """Render a gradient or solid color on a device segment."""
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    try:
        device = resolve_device(engine, arguments)
        gradient = parse_stops(arguments.get("stops"))
        if gradient is None:
            return _error("stops is required")
    except (KeyError, ValueError, TypeError) as e:
        return _error(str(e))

    ok = await engine.apply_gradient(
        device,
        gradient,
        segment_id=int(arguments.get("segment_id", 0)),
        temperatures=arguments.get("temperatures"),
        brightness=arguments.get("brightness"),
    )
    return _reply({"success": ok, "device_id": device.id, "stops": gradient.to_list()})


async def handle_start_transition(arguments: dict) -> List[TextContent]:
    """Start an A->B transition."""
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    try:
        device = resolve_device(engine, arguments)
        gradient_a = parse_stops(arguments.get("from_stops"))
        gradient_b = parse_stops(arguments.get("to_stops"))
    except (KeyError, ValueError, TypeError) as e:
        return _error(str(e))

    brightness_a = int(arguments.get("brightness_a", 255))
    ok = await engine.start_transition(
        gradient_a,
        brightness_a,
        gradient_b,
        arguments.get("brightness_b"),
        arguments.get("duration_seconds"),
        device,
    )
    run = engine.transitions.get_run(device.id)
    return _reply({
        "success": ok,
        "device_id": device.id,
        "state": engine.transition_state(device).value,
        "total_frames": run.total_frames if run else None,
        "duration_seconds": run.spec.duration_seconds if run else None,
    })


async def handle_cancel_transition(arguments: dict) -> List[TextContent]:
    """Cancel the running transition and revert to gradient A."""
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    try:
        device = resolve_device(engine, arguments)
    except KeyError as e:
        return _error(str(e))
    reverted = await engine.cancel_active_transition(device)
    return _reply({"success": reverted, "device_id": device.id})


async def handle_set_power(arguments: dict) -> List[TextContent]:
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    if "on" not in arguments:
        return _error("on is required")
    try:
        device = resolve_device(engine, arguments)
    except KeyError as e:
        return _error(str(e))
    ok = await engine.set_power(device, bool(arguments["on"]))
    return _reply({"success": ok, "device_id": device.id, "on": engine.get_current_power_state(device)})


async def handle_get_power(arguments: dict) -> List[TextContent]:
    """Presented power state: optimistic value inside its window, else confirmed."""
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    try:
        device = resolve_device(engine, arguments)
    except KeyError as e:
        return _error(str(e))
    if arguments.get("refresh"):
        await engine.refresh_device(device)
    return _reply({
        "device_id": device.id,
        "on": engine.get_current_power_state(device),
        "confirmed": device.is_on,
        "pending": engine.optimistic.pending(device.id),
    })


async def handle_refresh_device(arguments: dict) -> List[TextContent]:
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    try:
        device = resolve_device(engine, arguments)
    except KeyError as e:
        return _error(str(e))
    ok = await engine.refresh_device(device)
    caps = engine.capabilities.for_segment(device.id, 0)
    result = device.to_dict()
    result.update({"success": ok, "capabilities": caps.describe()})
    return _reply(result)
