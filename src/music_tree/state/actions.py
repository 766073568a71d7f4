"""Common state operations shared by tree-building services."""

from typing import Any

from .store import StateStore

_TREE_RESET = [
    ("dom.all_nodes", []),
    ("dom.all_containers", []),
    ("ui.selected_tags", set()),
    ("tree.node_counter", 0),
    ("app.selected_tag_for_next_node", None),
    ("app.current_multi_tag_container", None),
    ("app.current_tag_source_track", None),
]

_SESSION_RESET = [
    ("playlist.entries", []),
    ("app.has_used_drop_zone", False),
    ("app.is_phases_view_active", False),
]


def increment_node_counter(store: StateStore) -> int:
    """Advance the tree node counter and return the new value."""
    current = store.get("tree.node_counter", 0) or 0
    store.set("tree.node_counter", current + 1)
    return current + 1


def set_selected_tag_for_next_node(store: StateStore, tag: Any) -> None:
    store.set("app.selected_tag_for_next_node", tag)


def set_current_multi_tag_container(store: StateStore, container: Any) -> None:
    store.set("app.current_multi_tag_container", container)


def clear_tree_state(store: StateStore) -> None:
    """Drop the canvas tree and tag selection in one batch."""
    store.transaction([(path, value) for path, value in _TREE_RESET])


def clear_all(store: StateStore) -> None:
    """Clear the tree, the playlist and the first-use flags in one batch."""
    store.transaction([(path, value) for path, value in _TREE_RESET + _SESSION_RESET])
