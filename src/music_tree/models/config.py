"""Configuration model for the music tree runtime."""

from pathlib import Path
from typing import Any, Dict, List
import json
from dataclasses import dataclass, field, fields, is_dataclass, asdict

from ..exceptions import ConfigurationError


@dataclass
class EventBusConfig:
    """Configuration for the event bus."""
    debug: bool = False
    max_emit_depth: int = 64
    max_error_depth: int = 1


@dataclass
class StateConfig:
    """Configuration for the state store."""
    max_history: int = 50
    max_notify_depth: int = 32


@dataclass
class ServiceManagerConfig:
    """Configuration for service lifecycle handling."""
    enable_health_checks: bool = False
    health_check_interval: float = 30.0  # seconds
    shutdown_timeout: float = 5.0  # seconds per service


@dataclass
class ServiceEntry:
    """A service to register, with its factory given as ``module:attribute``."""
    name: str
    factory: str
    dependencies: List[str] = field(default_factory=list)
    required: bool = True
    auto_start: bool = True


@dataclass
class RuntimeConfig:
    """Main configuration model."""
    event_bus: EventBusConfig = field(default_factory=EventBusConfig)
    state: StateConfig = field(default_factory=StateConfig)
    service_manager: ServiceManagerConfig = field(default_factory=ServiceManagerConfig)
    services: List[ServiceEntry] = field(default_factory=list)

    @classmethod
    def default(cls) -> "RuntimeConfig":
        """Create a default configuration with the built-in services."""
        return cls(services=[
            ServiceEntry(
                name="notifications",
                factory="music_tree.services.builtins.notifications:NotificationService",
                required=False,
            ),
        ])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuntimeConfig":
        """Build a configuration from parsed JSON.

        Raises:
            ConfigurationError: If a section has unknown or malformed fields
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a JSON object")
        try:
            return cls(
                event_bus=_section(EventBusConfig, data.get("event_bus", {})),
                state=_section(StateConfig, data.get("state", {})),
                service_manager=_section(ServiceManagerConfig, data.get("service_manager", {})),
                services=[_section(ServiceEntry, entry) for entry in data.get("services", [])],
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _section(dataclass_type, data):
    """Convert a dict to a flat dataclass, rejecting unknown keys."""
    if not is_dataclass(dataclass_type):
        return data
    if not isinstance(data, dict):
        raise TypeError(f"{dataclass_type.__name__} must be an object, got {type(data).__name__}")

    known = {f.name for f in fields(dataclass_type)}
    unknown = set(data) - known
    if unknown:
        raise TypeError(f"Unknown {dataclass_type.__name__} options: {sorted(unknown)}")
    return dataclass_type(**data)


def load_config(config_path: Path) -> RuntimeConfig:
    """Load configuration from JSON file."""
    try:
        with open(config_path, 'r') as f:
            config_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read configuration {config_path}: {e}") from e

    return RuntimeConfig.from_dict(config_data)


def save_config(config: RuntimeConfig, config_path: Path) -> None:
    """Save configuration to JSON file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    save_config(RuntimeConfig.default(), config_path)
