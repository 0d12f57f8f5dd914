"""MCP Tool Handlers - organized by domain.

Each module groups handlers by their functional area.
"""

from .device_ops import (
    handle_apply_gradient,
    handle_start_transition,
    handle_cancel_transition,
    handle_set_power,
    handle_get_power,
    handle_refresh_device,
)

from .preset_ops import (
    handle_save_color_preset,
    handle_list_presets,
    handle_apply_preset,
    handle_delete_preset,
    handle_resync_presets,
)

__all__ = [
    # Device operations
    "handle_apply_gradient",
    "handle_start_transition",
    "handle_cancel_transition",
    "handle_set_power",
    "handle_get_power",
    "handle_refresh_device",
    # Presets
    "handle_save_color_preset",
    "handle_list_presets",
    "handle_apply_preset",
    "handle_delete_preset",
    "handle_resync_presets",
]
