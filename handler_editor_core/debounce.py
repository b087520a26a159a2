"""
Cancelable trailing-edge debounce built on ``threading.Timer``.

Each ``trigger()`` cancels the pending timer and starts a new one, so the
callback runs once, ``delay`` seconds after the last trigger of a burst.
"""

from functools import partial
from typing import Callable, Optional
import logging
import threading

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class Debouncer:
    """Runs ``callback`` after a quiet period with no new triggers."""

    def __init__(self, delay: float, callback: Callable[[], None],
                 timer_factory: Optional[TimerFactory] = None):
        self.delay = delay
        self._callback = callback
        self._timer_factory = timer_factory or threading.Timer
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self):
        """Start (or restart) the quiet period."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = self._timer_factory(self.delay, partial(self._fire, self._generation))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self) -> bool:
        """Drop the pending run, if any. Returns True if one was pending."""
        with self._lock:
            timer, self._timer = self._timer, None
            self._generation += 1
        if timer is None:
            return False
        timer.cancel()
        return True

    def flush(self) -> bool:
        """Run the pending callback now instead of waiting for the timer."""
        if not self.cancel():
            return False
        self._callback()
        return True

    def _fire(self, generation: int):
        with self._lock:
            # A timer that was cancelled while already firing must not run.
            if generation != self._generation or self._timer is None:
                logger.debug("Dropping superseded debounce timer")
                return
            self._timer = None
        self._callback()
