"""Assembly of the event bus, state store and service manager."""

import logging
from typing import Optional

from .events.event_bus import EventBus
from .models.config import RuntimeConfig
from .services.manager import ServiceManager
from .state.store import StateStore

logger = logging.getLogger(__name__)


class Runtime:
    """One bus, one store and one service manager for a process.

    Usage:
        async with Runtime(config) as runtime:
            runtime.store.set("ui.current_view", "playlist")
    """

    def __init__(self, config: Optional[RuntimeConfig] = None) -> None:
        self.config = config or RuntimeConfig()
        self.bus = EventBus(
            debug=self.config.event_bus.debug,
            max_emit_depth=self.config.event_bus.max_emit_depth,
            max_error_depth=self.config.event_bus.max_error_depth,
        )
        self.store = StateStore(
            self.bus,
            max_history=self.config.state.max_history,
            max_notify_depth=self.config.state.max_notify_depth,
        )
        self.services = ServiceManager(self.store, self.bus, self.config.service_manager)
        self._registered = False

    async def start(self) -> None:
        """Register the configured services and start them."""
        if not self._registered:
            self.services.register_from_config(self.config.services)
            self._registered = True
        await self.services.initialize_services()

    async def stop(self) -> None:
        await self.services.shutdown_services()

    async def __aenter__(self) -> "Runtime":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
