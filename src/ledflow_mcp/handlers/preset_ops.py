"""Preset handlers - save, list, apply, delete, resync."""

from typing import List

from mcp.types import TextContent

from ..storage.presets import ColorPayload, Preset, PresetKind
from .device_ops import _error, _get_engine, _reply, parse_stops, resolve_device


def _summary(preset: Preset) -> dict:
    return {
        "preset_id": preset.local_id,
        "kind": preset.kind.value,
        "name": preset.name,
        "device_id": preset.device_id,
        "remote_id": preset.remote_id,
        "synced": preset.synced,
    }


async def handle_save_color_preset(arguments: dict) -> List[TextContent]:
    """Save locally; the device copy is made in the background."""
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    name = arguments.get("name")
    if not name:
        return _error("name is required")
    try:
        gradient = parse_stops(arguments.get("stops"))
        if gradient is None:
            return _error("stops is required")
        device = resolve_device(engine, arguments) if arguments.get("device_id") or len(engine.devices) == 1 else None
    except (KeyError, ValueError, TypeError) as e:
        return _error(str(e))

    preset = Preset(
        kind=PresetKind.COLOR,
        name=name,
        payload=ColorPayload(gradient, arguments.get("brightness", 255), arguments.get("temperature")),
    )
    engine.save_preset(preset, device)
    return _reply({"success": True, **_summary(preset)})


async def handle_list_presets(arguments: dict) -> List[TextContent]:
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    kind = arguments.get("kind")
    try:
        kind_enum = PresetKind(kind) if kind else None
    except ValueError:
        return _error(f"unknown kind: {kind}", valid=[k.value for k in PresetKind])
    presets = engine.load_presets(kind_enum, arguments.get("device_id"))
    return _reply({"count": len(presets), "presets": [_summary(p) for p in presets]})


async def handle_apply_preset(arguments: dict) -> List[TextContent]:
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    preset_id = arguments.get("preset_id")
    if not preset_id:
        return _error("preset_id is required")
    try:
        device = resolve_device(engine, arguments)
    except KeyError as e:
        return _error(str(e))
    ok = await engine.apply_preset(preset_id, device)
    return _reply({"success": ok, "preset_id": preset_id, "device_id": device.id})


async def handle_delete_preset(arguments: dict) -> List[TextContent]:
    """Local delete only; presets stored on the device stay there."""
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    preset_id = arguments.get("preset_id")
    if not preset_id:
        return _error("preset_id is required")
    return _reply({"success": engine.delete_preset(preset_id), "preset_id": preset_id})


async def handle_resync_presets(arguments: dict) -> List[TextContent]:
    engine = _get_engine()
    if engine is None:
        return _error("Engine not initialized")
    try:
        device = resolve_device(engine, arguments)
    except KeyError as e:
        return _error(str(e))
    synced = await engine.resync_presets(device)
    remaining = len(engine.presets.unsynced(device.id))
    return _reply({"device_id": device.id, "synced": synced, "unsynced_remaining": remaining})
