"""
Tests for runtime configuration loading and saving.
"""

import json

import pytest

from music_tree.exceptions import ConfigurationError
from music_tree.models.config import (
    EventBusConfig,
    RuntimeConfig,
    ServiceEntry,
    create_default_config,
    load_config,
    save_config,
)


class TestRuntimeConfig:

    def test_defaults(self):
        config = RuntimeConfig()
        assert config.event_bus == EventBusConfig()
        assert config.event_bus.max_error_depth == 1
        assert config.state.max_history == 50
        assert config.service_manager.enable_health_checks is False
        assert config.services == []

    def test_default_services(self):
        config = RuntimeConfig.default()
        assert [entry.name for entry in config.services] == ["notifications"]
        assert config.services[0].required is False

    def test_from_dict(self):
        config = RuntimeConfig.from_dict({
            "event_bus": {"debug": True},
            "state": {"max_history": 10},
            "services": [
                {"name": "audio", "factory": "pkg.audio:AudioService"},
                {"name": "playlist", "factory": "pkg.playlist:PlaylistService",
                 "dependencies": ["audio"], "auto_start": False},
            ],
        })

        assert config.event_bus.debug is True
        assert config.event_bus.max_emit_depth == 64
        assert config.state.max_history == 10
        assert config.services[1] == ServiceEntry(
            name="playlist",
            factory="pkg.playlist:PlaylistService",
            dependencies=["audio"],
            auto_start=False,
        )

    @pytest.mark.parametrize("data", [
        [],
        {"event_bus": {"verbose": True}},
        {"state": 5},
        {"services": [{"name": "audio"}]},
    ])
    def test_from_dict_rejects(self, data):
        with pytest.raises(ConfigurationError):
            RuntimeConfig.from_dict(data)

    def test_round_trip_through_dict(self):
        config = RuntimeConfig.default()
        assert RuntimeConfig.from_dict(config.to_dict()) == config


class TestConfigFiles:

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "runtime.json"
        config = RuntimeConfig.default()
        config.state.max_history = 5

        save_config(config, path)

        assert json.loads(path.read_text())["state"]["max_history"] == 5
        assert load_config(path) == config

    def test_create_default(self, tmp_path):
        path = tmp_path / "runtime.json"
        create_default_config(path)
        assert load_config(path) == RuntimeConfig.default()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_config(path)
