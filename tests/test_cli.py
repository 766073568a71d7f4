"""Tests for CLI module."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from music_tree.cli import build_state_tree, cli
from music_tree.exceptions import ConfigurationError


@pytest.fixture
def runner():
    return CliRunner()


class TestStateCommand:

    def test_whole_document(self, runner):
        result = runner.invoke(cli, ["state"])
        assert result.exit_code == 0
        assert "playlist" in result.output
        assert "node_counter" in result.output

    def test_single_path(self, runner):
        result = runner.invoke(cli, ["state", "--path", "ui.current_view"])
        assert result.exit_code == 0
        assert "'tree'" in result.output

    def test_unknown_path(self, runner):
        result = runner.invoke(cli, ["state", "--path", "ui.nothing"])
        assert result.exit_code == 1
        assert "No state at 'ui.nothing'" in result.output


class TestServicesCommand:

    def test_default_services(self, runner):
        result = runner.invoke(cli, ["services"])
        assert result.exit_code == 0
        assert "notifications" in result.output
        assert "initialized" in result.output

    def test_from_config_file(self, runner, tmp_path):
        path = tmp_path / "runtime.json"
        path.write_text(json.dumps({
            "services": [{
                "name": "notices",
                "factory": "music_tree.services.builtins.notifications:NotificationService",
            }]
        }))

        result = runner.invoke(cli, ["services", "--config", str(path)])

        assert result.exit_code == 0
        assert "notices" in result.output

    def test_configuration_error(self, runner):
        with patch("music_tree.cli.RuntimeConfig.default",
                   side_effect=ConfigurationError("bad config")):
            result = runner.invoke(cli, ["services"])

        assert result.exit_code == 1
        assert "Error: bad config" in result.output


class TestInitConfig:

    def test_writes_file(self, runner, tmp_path):
        path = tmp_path / "runtime.json"
        result = runner.invoke(cli, ["init-config", str(path)])

        assert result.exit_code == 0
        assert json.loads(path.read_text())["services"][0]["name"] == "notifications"

    def test_refuses_to_overwrite(self, runner, tmp_path):
        path = tmp_path / "runtime.json"
        path.write_text("{}")

        result = runner.invoke(cli, ["init-config", str(path)])

        assert result.exit_code == 1
        assert path.read_text() == "{}"

    def test_force(self, runner, tmp_path):
        path = tmp_path / "runtime.json"
        path.write_text("{}")

        result = runner.invoke(cli, ["init-config", str(path), "--force"])

        assert result.exit_code == 0
        assert "services" in json.loads(path.read_text())


def test_build_state_tree():
    tree = build_state_tree("ui", {"current_view": "tree", "flags": {"loading": False}})
    assert tree.children[0].label == "[cyan]current_view[/cyan]: 'tree'"
    assert len(tree.children[1].children) == 1
