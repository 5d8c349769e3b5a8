"""Repeating background timers for exam sessions."""
import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Schedules a callback to run every `interval` seconds until cancelled."""

    def every(self, interval: float, callback: Callable[[], None], name: str) -> TimerHandle: ...


class RepeatingTimer:
    """
    Daemon thread calling `callback` every `interval` seconds.

    `cancel()` wakes the thread immediately; once it returns no further
    call is started. Exceptions from the callback are logged and the timer
    keeps running.
    """

    def __init__(self, interval: float, callback: Callable[[], None], name: str) -> None:
        self.interval = interval
        self._callback = callback
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._worker, name=name, daemon=True)

    def start(self) -> "RepeatingTimer":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _worker(self) -> None:
        while not self._cancelled.wait(self.interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Timer %s callback failed", self._thread.name)


class ThreadScheduler:
    """Scheduler backed by one RepeatingTimer thread per job."""

    def every(self, interval: float, callback: Callable[[], None], name: str) -> RepeatingTimer:
        return RepeatingTimer(interval, callback, name).start()
