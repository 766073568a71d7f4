"""
Tests for shared state operations.
"""

from unittest.mock import Mock

import pytest

from music_tree.events.event_bus import EventBus
from music_tree.state import actions
from music_tree.state.store import StateStore


@pytest.fixture
def store():
    return StateStore(EventBus())


def test_increment_node_counter(store):
    assert actions.increment_node_counter(store) == 1
    assert actions.increment_node_counter(store) == 2
    assert store.get("tree.node_counter") == 2


def test_setters(store):
    actions.set_selected_tag_for_next_node(store, "ambient")
    actions.set_current_multi_tag_container(store, {"id": "c1"})

    assert store.get("app.selected_tag_for_next_node") == "ambient"
    assert store.get("app.current_multi_tag_container") == {"id": "c1"}


def test_clear_tree_state(store):
    store.set("tree.node_counter", 7)
    store.set("ui.selected_tags", {"rock"})
    store.set("dom.all_nodes", ["n1", "n2"])
    store.set("playlist.entries", ["track"])
    callback = Mock()
    store.subscribe("tree.node_counter", callback)

    actions.clear_tree_state(store)

    assert store.get("tree.node_counter") == 0
    assert store.get("ui.selected_tags") == set()
    assert store.get("dom.all_nodes") == []
    assert store.get("playlist.entries") == ["track"]
    callback.assert_called_once_with(0, 7, "tree.node_counter")


def test_clear_all(store):
    store.set("playlist.entries", ["track"])
    store.set("app.has_used_drop_zone", True)
    store.set("tree.node_counter", 3)

    actions.clear_all(store)

    assert store.get("playlist.entries") == []
    assert store.get("app.has_used_drop_zone") is False
    assert store.get("tree.node_counter") == 0


def test_clear_is_one_undo_free_batch(store):
    store.set("tree.node_counter", 3)
    history_before = len(store.get_history())

    actions.clear_all(store)

    assert len(store.get_history()) == history_before
