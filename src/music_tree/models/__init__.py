"""Configuration models."""

from .config import (
    EventBusConfig,
    RuntimeConfig,
    ServiceEntry,
    ServiceManagerConfig,
    StateConfig,
    create_default_config,
    load_config,
    save_config,
)

__all__ = [
    "RuntimeConfig",
    "EventBusConfig",
    "StateConfig",
    "ServiceManagerConfig",
    "ServiceEntry",
    "load_config",
    "save_config",
    "create_default_config",
]
