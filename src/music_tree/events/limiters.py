"""Rate limiting wrappers for event listeners.

Both wrappers are plain callables, so the bus can register them in place of
the listener they wrap. A wrapper is the *effective* callback of a
subscription; ``EventBus.off`` must be handed the wrapper, not the original.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Throttle:
    """Call ``func`` at most once per window, dropping calls inside it.

    The first call opens the window and runs immediately; calls made before
    ``interval_ms`` has elapsed are discarded.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        interval_ms: float,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"Throttle interval must be positive, got {interval_ms}")
        self.func = func
        self.interval = interval_ms / 1000.0
        self._clock = clock
        self._window_end: Optional[float] = None

    def __call__(self, *args: Any) -> Any:
        now = self._clock()
        if self._window_end is not None and now < self._window_end:
            return None
        self._window_end = now + self.interval
        return self.func(*args)

    def cancel(self) -> None:
        """Close the current window."""
        self._window_end = None

    def __repr__(self) -> str:
        return f"Throttle({self.func!r}, {self.interval * 1000:g}ms)"


class Debounce:
    """Delay ``func`` until calls have stopped for ``delay_ms``.

    Every call restarts the timer; only the arguments of the last call are
    delivered. Scheduling happens on the running asyncio loop.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        delay_ms: float,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> None:
        if delay_ms <= 0:
            raise ValueError(f"Debounce delay must be positive, got {delay_ms}")
        self.func = func
        self.delay = delay_ms / 1000.0
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

    @property
    def pending(self) -> bool:
        """Whether a delayed call is waiting to fire."""
        return self._handle is not None

    def __call__(self, *args: Any) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self.cancel()
        self._handle = loop.call_later(self.delay, self._fire, args)

    def _fire(self, args: tuple) -> None:
        self._handle = None
        try:
            self.func(*args)
        except Exception as e:
            # The emitting call has already returned, so report out of band
            if self.on_error is not None:
                self.on_error(e)
            else:
                logger.exception(f"Debounced listener {self.func!r} failed")

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def __repr__(self) -> str:
        return f"Debounce({self.func!r}, {self.delay * 1000:g}ms)"
