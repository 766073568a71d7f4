"""Service layer for the music tree runtime."""

from .base import Service
from .manager import ServiceDescriptor, ServiceManager, ServiceStatus, resolve_factory

__all__ = [
    'Service',
    'ServiceManager',
    'ServiceDescriptor',
    'ServiceStatus',
    'resolve_factory',
]
