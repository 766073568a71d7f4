"""
Event System - Topic-based messaging

This package implements the publish/subscribe layer that decouples the
state store, the service manager and the services of the music tree.
"""

from .event_bus import EventBus, Subscription
from .limiters import Debounce, Throttle
from . import topics

__all__ = [
    "EventBus",
    "Subscription",
    "Throttle",
    "Debounce",
    "topics",
]
