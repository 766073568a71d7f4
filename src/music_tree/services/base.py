"""Base service interface for the music tree runtime."""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..events.event_bus import EventBus
from ..exceptions import ConfigurationError, ValidationError
from ..state.store import StateStore, Update
from ..state.utils import MISSING


class Service:
    """Base class for all services.

    A service only talks to the rest of the application through the shared
    state store and event bus. Subscriptions made with
    ``subscribe_to_state`` and ``subscribe_to_event`` are tracked and
    removed by ``destroy``.
    """

    def __init__(
        self,
        store: StateStore,
        bus: EventBus,
        dependencies: Optional[Mapping[str, Any]] = None
    ) -> None:
        """Initialize service with the shared store and bus.

        Args:
            store: Shared state store
            bus: Shared event bus
            dependencies: Started services this one declared as dependencies
        """
        if store is None or bus is None:
            raise ConfigurationError(
                f"{type(self).__name__} requires a StateStore and an EventBus"
            )
        self.store = store
        self.bus = bus
        self.dependencies: Dict[str, Any] = dict(dependencies or {})
        self._subscriptions: List[Callable[[], None]] = []
        self.logger = logging.getLogger(f"{__name__}.{self.service_name}")

    @property
    def service_name(self) -> str:
        return type(self).__name__

    def initialize(self) -> None:
        """Set up subscriptions. Called once by the service manager."""
        pass

    def get_dependency(self, name: str) -> Optional[Any]:
        return self.dependencies.get(name)

    def has_dependency(self, name: str) -> bool:
        return name in self.dependencies

    def subscribe_to_state(
        self,
        path: str,
        callback: Callable[[Any, Any, str], Any]
    ) -> Callable[[], None]:
        """Subscribe to a state path; removed automatically on destroy."""
        unsubscribe = self.store.subscribe(path, callback)
        self._subscriptions.append(unsubscribe)
        return unsubscribe

    def subscribe_to_event(
        self,
        topic: str,
        callback: Callable[[Any], Any],
        **options: Any
    ) -> Callable[[], None]:
        """Subscribe to a bus topic; removed automatically on destroy.

        ``options`` are passed to ``EventBus.on`` (``throttle``, ``debounce``).
        """
        unsubscribe = self.bus.on(topic, callback, **options)
        self._subscriptions.append(unsubscribe)
        return unsubscribe

    def emit_event(self, topic: str, data: Any = None, **options: Any) -> None:
        self.bus.emit(topic, data, **options)

    def get_state(self, path: str, default: Any = MISSING) -> Any:
        return self.store.get(path, default)

    def set_state(self, path: str, value: Any, *, force: bool = False) -> None:
        self.store.set(path, value, force=force)

    def update_state(self, updates: Iterable[Update]) -> None:
        """Write several paths with a single round of notifications."""
        self.store.transaction(updates)

    def validate(
        self,
        data: Any,
        rules: Optional[Mapping[str, Callable[[Any], bool]]]
    ) -> bool:
        """Check fields of ``data`` against predicates, stopping at the first failure.

        Args:
            data: Mapping or object to check; fields are read by key from a
                mapping and as attributes otherwise, missing ones as None
            rules: Field name to predicate mapping

        Returns:
            True if every rule passed

        Raises:
            ValidationError: Naming the first field that failed
        """
        if not rules:
            return True

        for field_name, rule in rules.items():
            if callable(rule) and not rule(_field(data, field_name)):
                raise ValidationError(
                    f"Validation failed for field: {field_name}", path=field_name
                )
        return True

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def destroy(self) -> None:
        """Remove every tracked subscription."""
        subscriptions, self._subscriptions = self._subscriptions, []
        for unsubscribe in subscriptions:
            try:
                unsubscribe()
            except Exception as e:
                self.logger.warning(f"Failed to remove subscription: {e}")


def _field(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)
