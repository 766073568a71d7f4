"""
Event Bus - Topic-based publish/subscribe.

This module provides the in-process event bus shared by the state store,
the service manager and every service, enabling loose coupling between
components.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .limiters import Debounce, Throttle
from .topics import SYSTEM_ERROR

logger = logging.getLogger(__name__)

MIDDLEWARE_PHASES = ("before", "after")


@dataclass(eq=False)
class Subscription:
    """A registered listener on a topic."""
    topic: str
    callback: Callable[[Any], Any]
    effective: Callable[[Any], Any]
    limiters: Tuple[Any, ...] = ()
    active: bool = True

    def cancel(self) -> None:
        """Deactivate the subscription and drop any delayed call."""
        self.active = False
        for limiter in self.limiters:
            limiter.cancel()


class EventBus:
    """
    Central event bus for publishing and subscribing to topics.

    Listeners are called with a single ``data`` argument. Delivery is
    synchronous by default; ``emit(..., detached=True)`` schedules each
    listener separately on the running asyncio loop instead.

    A listener that raises never affects the emitter or the other
    listeners: the failure is published on the ``system:error`` topic with
    ``{"original_event", "error", "data"}``. Reporting is bounded by
    ``max_error_depth`` so a failing error listener cannot recurse forever.
    """

    def __init__(
        self,
        debug: bool = False,
        max_emit_depth: int = 64,
        max_error_depth: int = 1,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> None:
        self._topics: Dict[str, Dict[Callable, Subscription]] = {}
        self._middleware: List[Tuple[str, Callable[[str, Any], Any]]] = []
        self._tasks: Set[asyncio.Future] = set()
        self._loop = loop
        self._emit_depth = 0
        self._error_depth = 0
        self.debug = debug
        self.max_emit_depth = max_emit_depth
        self.max_error_depth = max_error_depth

    def on(
        self,
        topic: str,
        callback: Callable[[Any], Any],
        *,
        throttle: Optional[float] = None,
        debounce: Optional[float] = None
    ) -> Callable[[], None]:
        """
        Subscribe to a topic.

        Args:
            topic: Topic name (``namespace:event`` by convention)
            callback: Listener called with the event data
            throttle: Minimum milliseconds between deliveries
            debounce: Milliseconds of quiet before the last event is delivered

        Returns:
            A function that removes this subscription
        """
        if not callable(callback):
            raise TypeError(f"EventBus.on: callback must be callable for event '{topic}'")

        effective: Callable[[Any], Any] = callback
        limiters: List[Any] = []

        # Throttle wraps first, debounce wraps the throttled callable
        if throttle:
            effective = Throttle(effective, throttle)
            limiters.append(effective)
        if debounce:
            debounced = Debounce(effective, debounce, loop=self._loop)
            debounced.on_error = partial(self.report_error, topic)
            effective = debounced
            limiters.append(effective)

        subscribers = self._topics.setdefault(topic, {})
        if effective not in subscribers:
            subscribers[effective] = Subscription(
                topic=topic,
                callback=callback,
                effective=effective,
                limiters=tuple(limiters),
            )
            if self.debug:
                logger.debug(f"Subscribed {callback!r} to '{topic}'")

        def unsubscribe() -> None:
            self.off(topic, effective)

        return unsubscribe

    def off(self, topic: str, callback: Callable[[Any], Any]) -> None:
        """
        Unsubscribe from a topic.

        ``callback`` must be the effective callback, i.e. the wrapper when
        the subscription was throttled or debounced.
        """
        subscribers = self._topics.get(topic)
        if subscribers is None:
            return

        subscription = subscribers.pop(callback, None)
        if subscription is not None:
            subscription.cancel()
            if self.debug:
                logger.debug(f"Unsubscribed {subscription.callback!r} from '{topic}'")

        if not subscribers:
            del self._topics[topic]

    def once(self, topic: str, callback: Callable[[Any], Any]) -> None:
        """Subscribe to the next emission of a topic only."""
        if not callable(callback):
            raise TypeError(f"EventBus.once: callback must be callable for event '{topic}'")

        def once_wrapper(data: Any = None) -> Any:
            try:
                return callback(data)
            finally:
                self.off(topic, once_wrapper)

        self.on(topic, once_wrapper)

    def emit(self, topic: str, data: Any = None, *, detached: bool = False) -> None:
        """
        Emit an event to all subscribers of a topic.

        Args:
            topic: Topic name
            data: Event payload passed to every listener
            detached: Schedule each listener on the event loop instead of
                calling it before returning
        """
        if self._emit_depth >= self.max_emit_depth:
            logger.error(
                f"Dropping '{topic}': emission nesting exceeded {self.max_emit_depth}"
            )
            return

        loop = None
        if detached:
            loop = self._running_loop()
            if loop is None:
                logger.warning(
                    f"No running event loop for detached '{topic}', delivering synchronously"
                )

        self._emit_depth += 1
        try:
            if self.debug:
                logger.debug(f"Emit '{topic}': {data!r}")

            self._run_middleware("before", topic, data)

            subscribers = self._topics.get(topic)
            if subscribers:
                # Listeners added or removed from here on do not change this delivery
                snapshot = list(subscribers.values())
                for subscription in snapshot:
                    if loop is not None:
                        loop.call_soon(self._deliver_detached, subscription, data)
                    else:
                        self._deliver(subscription, data)

            self._run_middleware("after", topic, data)
        finally:
            self._emit_depth -= 1

    def use(self, phase: str, middleware: Callable[[str, Any], Any]) -> None:
        """
        Add middleware that observes every emission.

        Middleware is called with ``(topic, data)`` before or after the
        listeners run. Its exceptions are logged and never reach the emitter.
        """
        if phase not in MIDDLEWARE_PHASES:
            raise ValueError('EventBus.use: phase must be "before" or "after"')
        if not callable(middleware):
            raise TypeError("EventBus.use: middleware must be callable")
        self._middleware.append((phase, middleware))

    def report_error(self, original_event: str, error: Exception, data: Any = None) -> None:
        """Publish a failure on the system error topic."""
        if self._error_depth >= self.max_error_depth:
            logger.error(
                f"Error while reporting failure of '{original_event}': {error}",
                exc_info=error
            )
            return

        logger.warning(f"Error in listener for '{original_event}': {error}")
        self._error_depth += 1
        try:
            self.emit(SYSTEM_ERROR, {
                "original_event": original_event,
                "error": error,
                "data": data,
            })
        finally:
            self._error_depth -= 1

    def get_event_names(self) -> List[str]:
        """Return all topics that currently have subscribers."""
        return list(self._topics)

    def get_listener_count(self, topic: str) -> int:
        subscribers = self._topics.get(topic)
        return len(subscribers) if subscribers else 0

    def has_listeners(self, topic: str) -> bool:
        return topic in self._topics

    def clear(self, topic: Optional[str] = None) -> None:
        """Remove all subscriptions for one topic or for every topic."""
        topics = [topic] if topic is not None else list(self._topics)
        for name in topics:
            for subscription in self._topics.pop(name, {}).values():
                subscription.cancel()

    def set_debug(self, enabled: bool) -> None:
        self.debug = enabled

    async def join(self) -> None:
        """Wait for coroutines returned by listeners to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _running_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _deliver(self, subscription: Subscription, data: Any) -> None:
        try:
            result = subscription.effective(data)
            if inspect.isawaitable(result):
                self._spawn(result, subscription.topic, data)
        except Exception as e:
            self.report_error(subscription.topic, e, data)

    def _deliver_detached(self, subscription: Subscription, data: Any) -> None:
        # Unsubscribed after the emit but before the loop got here
        if not subscription.active:
            return
        self._deliver(subscription, data)

    def _spawn(self, awaitable: Any, topic: str, data: Any) -> None:
        loop = self._running_loop()
        if loop is None:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError(f"Async listener for '{topic}' needs a running event loop")

        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)
        task.add_done_callback(partial(self._task_done, topic, data))

    def _task_done(self, topic: str, data: Any, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.report_error(topic, error, data)

    def _run_middleware(self, phase: str, topic: str, data: Any) -> None:
        for registered_phase, middleware in list(self._middleware):
            if registered_phase != phase:
                continue
            try:
                middleware(topic, data)
            except Exception as e:
                logger.debug(f"Middleware {middleware!r} failed on '{topic}': {e}")
