"""
Reactive State Store - Centralized, validated application state.

All reads and writes go through dot-delimited paths. Every successful
write notifies, in order, the listeners of that exact path, the generic
``state:change`` topic and the path-derived ``state:<a>:<b>`` topic.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..events.topics import STATE_CHANGE, STATE_RESET, SYSTEM_ERROR, state_topic
from ..exceptions import StateError, TransactionError, ValidationError
from .history import ChangeRecord, StateHistory
from .schema import Validator, build_initial_state, default_validators
from .utils import MISSING, deep_clone, deep_equal, delete_in, get_in, set_in, split_path

logger = logging.getLogger(__name__)

StateListener = Callable[[Any, Any, str], Any]
InitialState = Union[Mapping[str, Any], Callable[[], Dict[str, Any]]]
Update = Union[Mapping[str, Any], Tuple[Any, ...]]


@dataclass
class _PendingChange:
    old_value: Any
    new_value: Any
    forced: bool = False


class StateStore:
    """
    Hierarchical application state with change notification and undo.

    The store owns its document: values are deep-copied on the way in and
    on the way out, so the only way to change state is through ``set``,
    ``transaction``, ``undo`` and ``reset``.
    """

    def __init__(
        self,
        bus: Any,
        initial_state: Optional[InitialState] = None,
        validators: Optional[Mapping[str, Validator]] = None,
        max_history: int = 50,
        max_notify_depth: int = 32
    ) -> None:
        """Initialize the store.

        Args:
            bus: Event bus that receives change events
            initial_state: Default document, or a factory returning one.
                Defaults to the application schema.
            validators: Path to predicate mapping. Defaults to the
                application schema's validators.
            max_history: Number of changes kept for undo
            max_notify_depth: Bound on notifications nested inside listeners
        """
        if bus is None or not callable(getattr(bus, "emit", None)):
            raise TypeError(
                f"StateStore requires an event bus with an emit method, got {type(bus).__name__}"
            )

        self.bus = bus
        self._initial_state = initial_state if initial_state is not None else build_initial_state
        self._state: Dict[str, Any] = self._build_initial()
        self._validators: Dict[str, Validator] = dict(
            default_validators() if validators is None else validators
        )
        self._listeners: Dict[str, Dict[StateListener, None]] = {}
        self._history = StateHistory(max_history)
        self._batch_depth = 0
        self._pending: Dict[str, _PendingChange] = {}
        self._notify_depth = 0
        self.max_notify_depth = max_notify_depth

    @property
    def in_transaction(self) -> bool:
        return self._batch_depth > 0

    def get(self, path: str, default: Any = MISSING) -> Any:
        """
        Get a copy of the value at a path.

        Returns ``default`` (``MISSING`` unless given) when any segment of
        the path does not exist. Never raises.
        """
        try:
            value = get_in(self._state, split_path(path))
        except StateError:
            return default
        if value is MISSING:
            return default
        return deep_clone(value)

    def set(self, path: str, value: Any, *, force: bool = False) -> None:
        """
        Set the value at a path.

        Args:
            path: Dotted path, intermediate records are created as needed
            value: New value
            force: Write and notify even if the value is unchanged

        Raises:
            ValidationError: If a registered predicate rejects the value
            StateError: If the path is invalid or the value is cyclic
        """
        segments = split_path(path)
        self._validate(path, value)

        new_value = deep_clone(value)
        old_value = get_in(self._state, segments)
        if not force and deep_equal(old_value, new_value):
            return

        set_in(self._state, segments, new_value)

        if self.in_transaction:
            self._queue(path, old_value, new_value, force)
        else:
            self._history.record(path, old_value, new_value)
            self._notify(path, new_value, old_value)

    def transaction(self, updates: Iterable[Update]) -> None:
        """
        Apply several writes, notifying only once they are all applied.

        Each update is a mapping ``{"path", "value", "options"}`` or a
        ``(path, value)`` / ``(path, value, options)`` tuple. Listeners of a
        path written several times are notified once with the first old
        value and the last new value.

        Writes are applied as they go. If one fails, the writes before it
        stay in the document, no notification is sent for any of them and
        ``TransactionError`` is raised.
        """
        if isinstance(updates, (str, bytes, Mapping)) or not isinstance(updates, Iterable):
            raise TypeError("StateStore.transaction: updates must be a list")
        entries = [self._coerce_update(update) for update in updates]

        applied: List[str] = []
        self._batch_depth += 1
        try:
            for path, value, force in entries:
                try:
                    self.set(path, value, force=force)
                except StateError as e:
                    raise TransactionError(
                        f"Transaction aborted at '{path}': {e}",
                        failed_path=path,
                        applied_paths=applied,
                    ) from e
                applied.append(path)
        except TransactionError:
            if self._batch_depth == 1:
                self._pending.clear()
            raise
        finally:
            self._batch_depth -= 1

        if self._batch_depth == 0:
            self._flush()

    def subscribe(self, path: str, callback: StateListener) -> Callable[[], None]:
        """
        Subscribe to changes at an exact path.

        The callback receives ``(new_value, old_value, path)``.

        Returns:
            A function that removes the subscription
        """
        if not callable(callback):
            raise TypeError(f"StateStore.subscribe: callback must be callable for '{path}'")

        self._listeners.setdefault(path, {})[callback] = None

        def unsubscribe() -> None:
            listeners = self._listeners.get(path)
            if listeners is None:
                return
            listeners.pop(callback, None)
            if not listeners:
                del self._listeners[path]

        return unsubscribe

    def undo(self) -> bool:
        """
        Revert the most recent recorded change.

        A record whose path no longer fits the document, e.g. a list index
        past the end after a reset or a transaction shrank the list, is
        dropped with a warning and still counts as reverted.

        Returns:
            True if there was a change to revert
        """
        record = self._history.pop()
        if record is None:
            return False

        segments = split_path(record.path)
        if record.old_value is MISSING:
            delete_in(self._state, segments)
        else:
            try:
                set_in(self._state, segments, deep_clone(record.old_value))
            except StateError as e:
                logger.warning(f"Cannot undo change to '{record.path}', skipping it: {e}")
                return True

        logger.debug(f"Undid change to '{record.path}'")
        self._notify(record.path, record.old_value, record.new_value)
        return True

    def reset(self, paths: Optional[Iterable[str]] = None) -> None:
        """
        Restore schema defaults.

        Args:
            paths: Paths to restore. When omitted the whole document is
                replaced and ``state:reset`` is emitted instead of per-path
                notifications.
        """
        initial = self._build_initial()

        if paths is None:
            self._state = initial
            logger.info("State reset to defaults")
            self.bus.emit(STATE_RESET)
            return

        if isinstance(paths, str):
            paths = [paths]

        for path in paths:
            value = get_in(initial, split_path(path))
            if value is MISSING:
                logger.warning(f"No default for '{path}', leaving it unchanged")
                continue
            self.set(path, value)

    def get_state(self) -> Dict[str, Any]:
        """Return a copy of the whole document."""
        return deep_clone(self._state)

    def get_history(self) -> List[ChangeRecord]:
        return self._history.records()

    def clear_history(self) -> None:
        self._history.clear()

    def register_validator(self, path: str, predicate: Validator) -> None:
        """Constrain future writes to ``path``."""
        if not callable(predicate):
            raise TypeError(f"Validator for '{path}' must be callable")
        self._validators[path] = predicate

    def unregister_validator(self, path: str) -> None:
        self._validators.pop(path, None)

    def get_listener_count(self, path: str) -> int:
        return len(self._listeners.get(path, {}))

    def _build_initial(self) -> Dict[str, Any]:
        if callable(self._initial_state):
            return self._initial_state()
        return deep_clone(dict(self._initial_state))

    def _validate(self, path: str, value: Any) -> None:
        predicate = self._validators.get(path)
        if predicate is None:
            return
        try:
            valid = predicate(value)
        except Exception as e:
            raise ValidationError(f"Validator for '{path}' failed: {e}", path=path) from e
        if not valid:
            raise ValidationError(f"Invalid value for '{path}': {value!r}", path=path)

    @staticmethod
    def _coerce_update(update: Update) -> Tuple[str, Any, bool]:
        if isinstance(update, Mapping):
            if "path" not in update:
                raise TypeError(f"Transaction update is missing 'path': {update!r}")
            options = update.get("options") or {}
            return update["path"], update.get("value"), bool(options.get("force", False))

        if isinstance(update, (tuple, list)) and len(update) in (2, 3):
            options = update[2] if len(update) == 3 and update[2] else {}
            return update[0], update[1], bool(options.get("force", False))

        raise TypeError(f"Invalid transaction update: {update!r}")

    def _queue(self, path: str, old_value: Any, new_value: Any, forced: bool) -> None:
        pending = self._pending.get(path)
        if pending is None:
            self._pending[path] = _PendingChange(old_value, new_value, forced)
        else:
            pending.new_value = new_value
            pending.forced = pending.forced or forced

    def _flush(self) -> None:
        pending, self._pending = self._pending, {}
        for path, change in pending.items():
            if not change.forced and deep_equal(change.old_value, change.new_value):
                continue
            self._notify(path, change.new_value, change.old_value)

    def _report_listener_error(self, path: str, error: Exception, data: Dict[str, Any]) -> None:
        report_error = getattr(self.bus, "report_error", None)
        if callable(report_error):
            report_error(state_topic(path), error, data)
            return

        # Bus without error reporting: publish the same payload ourselves
        logger.warning(f"Error in state listener for '{path}': {error}")
        self.bus.emit(SYSTEM_ERROR, {
            "original_event": state_topic(path),
            "error": error,
            "data": data,
        })

    def _notify(self, path: str, new_value: Any, old_value: Any) -> None:
        if self._notify_depth >= self.max_notify_depth:
            logger.error(
                f"Skipping notification for '{path}': nesting exceeded {self.max_notify_depth}"
            )
            return

        value = deep_clone(new_value)
        self._notify_depth += 1
        try:
            listeners = self._listeners.get(path)
            if listeners:
                for callback in list(listeners):
                    try:
                        callback(value, old_value, path)
                    except Exception as e:
                        self._report_listener_error(path, e, {
                            "path": path,
                            "value": value,
                            "old_value": old_value,
                        })

            self.bus.emit(STATE_CHANGE, {
                "path": path,
                "new_value": value,
                "old_value": old_value,
                "timestamp": datetime.now(),
            })

            self.bus.emit(state_topic(path), {
                "value": value,
                "old_value": old_value,
                "path": path,
            })
        finally:
            self._notify_depth -= 1
