"""
Tests for runtime assembly.
"""

from unittest.mock import Mock

import pytest

from music_tree.events.topics import SERVICES_INITIALIZED, SYSTEM_ERROR
from music_tree.exceptions import ConfigurationError
from music_tree.models.config import RuntimeConfig, ServiceEntry
from music_tree.runtime import Runtime
from music_tree.services.builtins.notifications import NotificationService


def test_components_share_one_bus():
    config = RuntimeConfig()
    config.state.max_history = 3
    config.event_bus.max_emit_depth = 8

    runtime = Runtime(config)

    assert runtime.store.bus is runtime.bus
    assert runtime.services.bus is runtime.bus
    assert runtime.services.store is runtime.store
    assert runtime.bus.max_emit_depth == 8
    assert runtime.store.get_history() == []


def test_separate_runtimes_are_isolated():
    first = Runtime()
    second = Runtime()

    first.store.set("ui.current_view", "phases")

    assert second.store.get("ui.current_view") == "tree"
    assert first.bus is not second.bus


@pytest.mark.asyncio
async def test_context_manager_starts_and_stops():
    runtime = Runtime(RuntimeConfig.default())
    started = Mock()
    runtime.bus.on(SERVICES_INITIALIZED, started)

    async with runtime:
        service = runtime.services.get_service("notifications")
        assert isinstance(service, NotificationService)
        assert runtime.bus.has_listeners(SYSTEM_ERROR)

    started.assert_called_once()
    assert runtime.services.get_service("notifications") is None
    assert not runtime.bus.has_listeners(SYSTEM_ERROR)


@pytest.mark.asyncio
async def test_bad_factory_path():
    config = RuntimeConfig(services=[ServiceEntry(name="x", factory="nowhere_xyz:Service")])
    runtime = Runtime(config)

    with pytest.raises(ConfigurationError):
        await runtime.start()
