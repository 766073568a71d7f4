"""Music Tree Runtime

Event bus, reactive state store and service lifecycle for the music tree
playlist builder.
"""

__version__ = "0.1.0"

from .events import EventBus
from .state import MISSING, StateStore
from .services import Service, ServiceManager, ServiceStatus
from .runtime import Runtime
from .models.config import RuntimeConfig, load_config
from .exceptions import (
    MusicTreeError,
    ConfigurationError,
    StateError,
    ValidationError,
    TransactionError,
    DependencyError,
    MissingDependencyError,
    CircularDependencyError,
    ServiceInitializationError,
    ServiceRegistrationError,
)

__all__ = [
    # Core components
    "EventBus",
    "StateStore",
    "Service",
    "ServiceManager",
    "Runtime",

    # Types and markers
    "MISSING",
    "ServiceStatus",
    "RuntimeConfig",

    # Utilities
    "load_config",

    # Errors
    "MusicTreeError",
    "ConfigurationError",
    "StateError",
    "ValidationError",
    "TransactionError",
    "DependencyError",
    "MissingDependencyError",
    "CircularDependencyError",
    "ServiceInitializationError",
    "ServiceRegistrationError",
]
