"""
Debounced background task used for checkout auto-save
"""
from threading import Lock, Timer, current_thread
from typing import Callable, Optional

import structlog


class DebouncedTask:
    """
    Runs a callable once, after `delay_ms` of quiet.

    Every schedule() restarts the countdown. The owner must call cancel()
    on teardown; a cancelled task ignores further schedule() calls.
    """

    def __init__(self, func: Callable[[], None], delay_ms: int, name: str = "debounced-task"):
        self.func = func
        self.delay_ms = delay_ms
        self.name = name
        self._timer: Optional[Timer] = None
        self._lock = Lock()
        self._closed = False
        self.logger = structlog.get_logger().bind(component="scheduler", task=name)

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = Timer(self.delay_ms / 1000, self._fire)
            self._timer.daemon = True
            self._timer.name = self.name
            self._timer.start()

    def flush(self) -> bool:
        """Run now if a run is pending. Returns True if it ran."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is None:
            return False
        timer.cancel()
        self._execute()
        return True

    def discard(self) -> None:
        """Drop any pending run; later schedule() calls still work"""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def cancel(self) -> None:
        """Drop any pending run and refuse new ones"""
        with self._lock:
            self._closed = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            self.logger.debug("Pending run cancelled")

    def _fire(self) -> None:
        with self._lock:
            # a superseded timer can still fire after cancel()
            if self._closed or self._timer is not current_thread():
                return
            self._timer = None
        self._execute()

    def _execute(self) -> None:
        try:
            self.func()
        except Exception as e:
            # runs on a timer thread; there is no caller to re-raise to
            self.logger.error("Debounced task failed", error=str(e), exc_info=True)
