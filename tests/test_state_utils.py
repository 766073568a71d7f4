"""
Property-based and unit tests for state document helpers.
"""

import copy

import pytest
from hypothesis import given, settings, strategies as st

from music_tree.events.event_bus import EventBus
from music_tree.exceptions import StateError
from music_tree.state.history import StateHistory
from music_tree.state.store import StateStore
from music_tree.state.utils import (
    MISSING, deep_clone, deep_equal, delete_in, get_in, set_in, split_path
)


# Strategies for document values
primitives = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.floats(allow_nan=False),
    st.text(max_size=20),
)

documents = st.recursive(
    primitives,
    lambda children: st.one_of(
        st.lists(children, max_size=5),
        st.dictionaries(st.text(min_size=1, max_size=8), children, max_size=5),
    ),
    max_leaves=20,
)

segment = st.text(
    alphabet=st.characters(whitelist_categories=("Ll", "Lu")),
    min_size=1,
    max_size=8,
)

paths = st.lists(segment, min_size=1, max_size=4).map(".".join)


class TestDeepCloneProperties:

    @given(documents)
    def test_clone_is_equal(self, value):
        assert deep_equal(deep_clone(value), value)

    @given(documents)
    def test_clone_shares_no_containers(self, value):
        clone = deep_clone(value)
        if isinstance(value, (dict, list)):
            assert clone is not value

    @given(documents)
    def test_equal_to_itself(self, value):
        assert deep_equal(value, copy.deepcopy(value))


class TestStoreProperties:

    @given(paths, documents)
    @settings(max_examples=50)
    def test_get_after_set(self, path, value):
        store = StateStore(EventBus(), initial_state={}, validators={})
        store.set(path, value)
        assert deep_equal(store.get(path), value)

    @given(st.lists(st.integers(min_value=0), min_size=1, max_size=30))
    @settings(max_examples=30)
    def test_history_never_exceeds_bound(self, values):
        history = StateHistory(max_size=10)
        for value in values:
            history.record("tree.node_counter", 0, value)
        assert len(history) == min(len(values), 10)


class TestDeepEqual:

    def test_bool_is_not_number(self):
        assert not deep_equal(True, 1)
        assert not deep_equal(0, False)

    def test_int_equals_float(self):
        assert deep_equal(1, 1.0)

    def test_sets_ignore_order(self):
        assert deep_equal({"a", "b"}, {"b", "a"})
        assert not deep_equal({"a"}, {"a", "b"})

    def test_list_and_tuple_differ(self):
        assert not deep_equal([1, 2], (1, 2))

    def test_nested_mappings(self):
        assert deep_equal({"a": [1, {"b": 2}]}, {"a": [1, {"b": 2}]})
        assert not deep_equal({"a": [1, {"b": 2}]}, {"a": [1, {"b": 3}]})
        assert not deep_equal({"a": 1}, {"b": 1})

    def test_missing(self):
        assert deep_equal(MISSING, MISSING)
        assert not deep_equal(MISSING, None)


class TestDeepClone:

    def test_cycle_raises(self):
        value = []
        value.append(value)
        with pytest.raises(StateError):
            deep_clone(value)

    def test_shared_reference_is_not_a_cycle(self):
        shared = {"x": 1}
        clone = deep_clone({"a": shared, "b": shared})
        assert clone == {"a": {"x": 1}, "b": {"x": 1}}

    def test_opaque_values_shared(self):
        handle = object()
        assert deep_clone({"canvas": handle})["canvas"] is handle

    def test_missing_is_singleton(self):
        assert copy.deepcopy(MISSING) is MISSING
        assert not MISSING
        assert repr(MISSING) == "MISSING"


class TestPaths:

    @pytest.mark.parametrize("path", ["", "a..b", ".a", "a."])
    def test_invalid_paths(self, path):
        with pytest.raises(StateError):
            split_path(path)

    def test_split(self):
        assert split_path("tree.node_counter") == ["tree", "node_counter"]

    def test_get_in_list(self):
        assert get_in({"a": [10, 20]}, ["a", "1"]) == 20
        assert get_in({"a": [10, 20]}, ["a", "x"]) is MISSING

    def test_set_in_nested_list(self):
        root = {"a": [{"b": 1}]}
        set_in(root, ["a", "0", "b"], 2)
        assert root == {"a": [{"b": 2}]}

    def test_delete_in(self):
        root = {"a": {"b": 1, "c": 2}}
        delete_in(root, ["a", "b"])
        assert root == {"a": {"c": 2}}
        delete_in(root, ["x", "y"])
        assert root == {"a": {"c": 2}}
