"""Default layout of the application state document."""

from typing import Any, Callable, Dict

Validator = Callable[[Any], bool]


def build_initial_state() -> Dict[str, Any]:
    """Return a fresh copy of the default document.

    Sections:
        tree: nodes and connections of the canvas tree
        playlist: the playlist being built from the tree
        ui: view flags, selected tags and pending notifications
        app: cross-cutting application flags
        data: tracks, artists and albums loaded from the library
        dom: handles owned by the rendering layer
    """
    return {
        "tree": {
            "nodes": [],
            "connections": [],
            "root_node": None,
            "node_counter": 0,
        },
        "playlist": {
            "entries": [],
            "current_index": 0,
            "is_playing": False,
            "total_duration": 0,
        },
        "ui": {
            "selected_tags": set(),
            "current_view": "tree",
            "drop_zone_visible": True,
            "is_loading": False,
            "notifications": [],
        },
        "app": {
            "has_used_drop_zone": False,
            "is_phases_view_active": False,
            "current_multi_tag_container": None,
            "current_tag_source_track": None,
            "selected_tag_for_next_node": None,
        },
        "data": {
            "tracks": [],
            "artists": [],
            "albums": [],
            "loaded_sources": [],
        },
        "dom": {
            "canvas": None,
            "canvas_content": None,
            "breadcrumb": None,
            "drop_zone": None,
            "all_nodes": [],
            "all_containers": [],
        },
    }


def is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_list(value: Any) -> bool:
    return isinstance(value, list)


def is_set(value: Any) -> bool:
    return isinstance(value, (set, frozenset))


def default_validators() -> Dict[str, Validator]:
    """Predicates enforced on writes to the default document."""
    return {
        "tree.node_counter": is_non_negative_int,
        "playlist.entries": is_list,
        "playlist.current_index": is_non_negative_int,
        "ui.selected_tags": is_set,
        "dom.all_nodes": is_list,
        "dom.all_containers": is_list,
    }
