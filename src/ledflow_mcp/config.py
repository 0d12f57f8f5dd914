"""
Configuration - engine tuning and device registry.

Configuration values define how the engine paces the device:
- Throttle windows for interactive edits
- Transition frame cadence and duration bounds
- Network timeouts for the device HTTP API
- Color temperature anchors
- Where local state is persisted
- Which devices exist and how long their segments are
"""

import json
import logging
import os
import yaml
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Tuple, Optional, Dict, Any, List

logger = logging.getLogger(__name__)


@dataclass
class ThrottleConfig:
    """Quiescence windows for continuous interactive edits (seconds)."""
    single_window: float = 0.060    # One control being dragged
    dual_window: float = 0.150      # A/B gradient edits, doubled device load


@dataclass
class TransitionConfig:
    """Timed A->B transition streaming."""
    max_writes_per_second: float = 20.0   # Cap regardless of requested frame rate
    default_frame_rate: float = 20.0
    min_duration: float = 0.5       # seconds
    max_duration: float = 7200.0    # seconds (two-hour sunrise)
    default_duration: float = 10.0


@dataclass
class NetworkConfig:
    """Device HTTP API limits."""
    request_timeout: float = 10.0   # seconds per request
    connect_timeout: float = 3.0
    pixel_chunk_size: int = 256     # LEDs per per-LED upload request


@dataclass
class TemperatureConfig:
    """Color temperature anchors (RGB8) and visibility floor."""
    warm_anchor: Tuple[int, int, int] = (255, 169, 87)     # ~2700K
    neutral_anchor: Tuple[int, int, int] = (255, 209, 163)  # ~4000K
    cool_anchor: Tuple[int, int, int] = (255, 249, 253)    # ~6500K
    min_visible_brightness: float = 0.3  # Fraction of full scale for max channel
    # When both are set, anchors come from the blackbody curve over this range instead
    min_kelvin: Optional[float] = None
    max_kelvin: Optional[float] = None


@dataclass
class OptimisticConfig:
    """Optimistic UI state reconciliation."""
    reconciliation_window: float = 0.75  # seconds


@dataclass
class StorageConfig:
    """Local key-value persistence."""
    root: str = "~/.ledflow"
    preset_sync_enabled: bool = True


@dataclass
class DeviceEntry:
    """A controller the engine may talk to."""
    id: str
    host: str
    name: str = ""
    segment_lengths: List[int] = field(default_factory=lambda: [120])


@dataclass
class EngineConfig:
    """Complete configuration for ledflow-mcp."""
    throttle: ThrottleConfig = field(default_factory=ThrottleConfig)
    transition: TransitionConfig = field(default_factory=TransitionConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    temperature: TemperatureConfig = field(default_factory=TemperatureConfig)
    optimistic: OptimisticConfig = field(default_factory=OptimisticConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    devices: List[DeviceEntry] = field(default_factory=list)
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        # Tuples don't survive YAML round-trips cleanly
        for key in ("warm_anchor", "neutral_anchor", "cool_anchor"):
            data["temperature"][key] = list(data["temperature"][key])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create from dictionary. Unknown sections fall back to defaults."""
        data = data or {}
        temperature = dict(data.get("temperature", {}))
        for key in ("warm_anchor", "neutral_anchor", "cool_anchor"):
            if key in temperature:
                temperature[key] = tuple(int(c) for c in temperature[key])
        return cls(
            throttle=ThrottleConfig(**data.get("throttle", {})),
            transition=TransitionConfig(**data.get("transition", {})),
            network=NetworkConfig(**data.get("network", {})),
            temperature=TemperatureConfig(**temperature),
            optimistic=OptimisticConfig(**data.get("optimistic", {})),
            storage=StorageConfig(**data.get("storage", {})),
            devices=[DeviceEntry(**d) for d in data.get("devices", [])],
            log_level=data.get("log_level", "INFO"),
        )

    def validate(self) -> Tuple[bool, Optional[str]]:
        """Validate configuration values are sensible."""
        if self.throttle.single_window <= 0 or self.throttle.dual_window <= 0:
            return False, "throttle windows must be positive"

        if self.throttle.dual_window < self.throttle.single_window:
            return False, "throttle dual_window must be >= single_window"

        t = self.transition
        if t.max_writes_per_second <= 0:
            return False, "transition max_writes_per_second must be positive"
        if not (0 < t.min_duration < t.max_duration):
            return False, "transition min_duration must be > 0 and < max_duration"

        if self.network.request_timeout <= 0 or self.network.connect_timeout <= 0:
            return False, "network timeouts must be positive"
        if self.network.pixel_chunk_size < 1:
            return False, "network pixel_chunk_size must be >= 1"

        for name in ("warm_anchor", "neutral_anchor", "cool_anchor"):
            anchor = getattr(self.temperature, name)
            if len(anchor) != 3 or any(not (0 <= c <= 255) for c in anchor):
                return False, f"temperature {name} must be three values 0-255"
        if not (0 <= self.temperature.min_visible_brightness <= 1):
            return False, "temperature min_visible_brightness must be 0-1"
        tc = self.temperature
        if (tc.min_kelvin is None) != (tc.max_kelvin is None):
            return False, "temperature min_kelvin and max_kelvin must be set together"
        if tc.min_kelvin is not None and not (0 < tc.min_kelvin < tc.max_kelvin):
            return False, "temperature min_kelvin must be > 0 and < max_kelvin"

        if self.optimistic.reconciliation_window <= 0:
            return False, "optimistic reconciliation_window must be positive"

        seen = set()
        for device in self.devices:
            if device.id in seen:
                return False, f"duplicate device id: {device.id}"
            seen.add(device.id)
            if not device.segment_lengths or any(n < 1 for n in device.segment_lengths):
                return False, f"device {device.id} segment_lengths must be positive"

        return True, None


class ConfigManager:
    """Manages configuration loading and saving."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config manager.

        Args:
            config_path: Path to config file (default: $LEDFLOW_CONFIG or ledflow_config.yaml)
        """
        if config_path is None:
            config_path = Path(os.environ.get("LEDFLOW_CONFIG", "ledflow_config.yaml"))
        self.config_path = Path(config_path)
        self._config: Optional[EngineConfig] = None

    def _is_yaml(self) -> bool:
        return self.config_path.suffix in (".yaml", ".yml")

    def load(self, force_reload: bool = False) -> EngineConfig:
        """Load configuration from file or return defaults."""
        if self._config is not None and not force_reload:
            return self._config

        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = yaml.safe_load(f) if self._is_yaml() else json.load(f)

                self._config = EngineConfig.from_dict(data)

                valid, error = self._config.validate()
                if not valid:
                    logger.warning("[Config] Invalid config, using defaults: %s", error)
                    self._config = EngineConfig()
            except Exception as e:
                logger.warning("[Config] Error loading config, using defaults: %s", e)
                self._config = EngineConfig()
        else:
            self._config = EngineConfig()

        return self._config

    def save(self, config: Optional[EngineConfig] = None) -> bool:
        """
        Save configuration to file.

        Returns:
            True if saved successfully
        """
        if config is None:
            config = self._config or self.load()

        valid, error = config.validate()
        if not valid:
            logger.warning("[Config] Cannot save invalid config: %s", error)
            return False

        try:
            data = config.to_dict()
            with open(self.config_path, "w") as f:
                if self._is_yaml():
                    yaml.dump(data, f, default_flow_style=False, sort_keys=False)
                else:
                    json.dump(data, f, indent=2)
            self._config = config
            return True
        except Exception as e:
            logger.warning("[Config] Error saving config: %s", e)
            return False

    def reload(self) -> EngineConfig:
        """Force reload configuration from file."""
        self._config = None
        return self.load()


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_path: Optional[Path] = None) -> ConfigManager:
    """Get global config manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_path)
    return _config_manager


def get_engine_config() -> EngineConfig:
    """Get current engine configuration."""
    return get_config_manager().load()
