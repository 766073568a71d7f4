"""Value helpers for the state document.

Values stored in the document are primitives, timestamps, lists, tuples,
sets and dicts nested from those. Anything else is treated as an opaque
handle: it is compared with ``==`` and shared by reference when cloned.
"""

from datetime import date, datetime, time
from numbers import Number
from typing import Any, Dict, List, Mapping, Optional, Set

from ..exceptions import StateError

PATH_DELIMITER = "."


class _Missing:
    """Marker for a path that does not exist in the document."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Missing":
        return self

    def __reduce__(self) -> str:
        return "MISSING"


MISSING = _Missing()

_ATOMIC = (str, bytes, Number, date, datetime, time, type(None), _Missing)


def deep_clone(value: Any) -> Any:
    """Copy nested dicts, lists, tuples and sets.

    Raises:
        StateError: If the value contains a reference cycle
    """
    return _clone(value, set())


def _clone(value: Any, active: Set[int]) -> Any:
    if isinstance(value, _ATOMIC):
        return value
    if isinstance(value, frozenset):
        return value
    if isinstance(value, set):
        return set(value)

    if isinstance(value, (dict, list, tuple)):
        marker = id(value)
        if marker in active:
            raise StateError("Cyclic values cannot be stored in the state document")
        active.add(marker)
        try:
            if isinstance(value, dict):
                return {key: _clone(item, active) for key, item in value.items()}
            items = [_clone(item, active) for item in value]
            return items if isinstance(value, list) else tuple(items)
        finally:
            active.discard(marker)

    return value


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality used for change detection.

    Sequences compare element by element in order, sets ignore order,
    ``bool`` never equals a number and ``1 == 1.0``.
    """
    if a is b:
        return True

    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b

    if isinstance(a, Number) and isinstance(b, Number):
        return a == b

    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b):
            return False
        return all(key in b and deep_equal(a[key], b[key]) for key in a)

    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if type(a) is not type(b) or len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))

    if isinstance(a, (set, frozenset)) and isinstance(b, (set, frozenset)):
        return a == b

    if type(a) is not type(b):
        return False

    return a == b


def split_path(path: str) -> List[str]:
    """Split a dotted path into its segments.

    Raises:
        StateError: If the path is empty or has an empty segment
    """
    if not isinstance(path, str) or not path:
        raise StateError("State path is required")
    segments = path.split(PATH_DELIMITER)
    if any(not segment for segment in segments):
        raise StateError(f"Invalid state path: '{path}'")
    return segments


def _index(container: list, key: str) -> Optional[int]:
    if key.isdigit():
        index = int(key)
        if index < len(container):
            return index
    return None


def get_in(root: Any, segments: List[str]) -> Any:
    """Return the value at ``segments`` or ``MISSING``."""
    current = root
    for key in segments:
        if isinstance(current, Mapping):
            if key not in current:
                return MISSING
            current = current[key]
        elif isinstance(current, (list, tuple)):
            index = _index(current, key)
            if index is None:
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def set_in(root: Dict[str, Any], segments: List[str], value: Any) -> None:
    """Write ``value`` at ``segments``, creating intermediate records.

    An intermediate that is neither a dict nor a list is replaced with an
    empty dict. List segments must be existing indexes; the final segment of
    a list may also be its length, which appends.
    """
    current: Any = root
    for key in segments[:-1]:
        if isinstance(current, list):
            index = _index(current, key)
            if index is None:
                raise StateError(f"Index '{key}' out of range")
            child = current[index]
            if not isinstance(child, (dict, list)):
                child = current[index] = {}
        else:
            child = current.get(key)
            if not isinstance(child, (dict, list)):
                child = current[key] = {}
        current = child

    last = segments[-1]
    if isinstance(current, list):
        if not last.isdigit() or int(last) > len(current):
            raise StateError(f"Index '{last}' out of range")
        if int(last) == len(current):
            current.append(value)
        else:
            current[int(last)] = value
    else:
        current[last] = value


def delete_in(root: Dict[str, Any], segments: List[str]) -> None:
    """Remove the value at ``segments`` if it exists."""
    parent = get_in(root, segments[:-1]) if len(segments) > 1 else root
    last = segments[-1]
    if isinstance(parent, dict):
        parent.pop(last, None)
    elif isinstance(parent, list) and last.isdigit() and int(last) == len(parent) - 1:
        parent.pop()
