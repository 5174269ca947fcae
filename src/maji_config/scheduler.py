"""Fixed-interval refresh scheduler running on a background thread."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable

from maji_config.errors import ClientStateError

logger = logging.getLogger(__name__)

__all__ = ["RefreshScheduler", "SchedulerState"]


class SchedulerState(str, Enum):
    """Lifecycle of a scheduler. STOPPED is terminal."""

    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"


class RefreshScheduler:
    """Calls ``tick`` every ``interval`` seconds until stopped.

    Ticks run one at a time on a single daemon thread. The wait for the
    next tick starts after the previous tick returns, so a slow tick
    delays the following one instead of overlapping it.

    An exception raised by ``tick`` is logged and the loop keeps going.
    ``on_exit``, if given, runs on the worker thread once the loop ends,
    however it was stopped.

    Thread safety:
        ``start`` and ``stop`` may be called from any thread.
    """

    def __init__(
        self,
        interval: float,
        tick: Callable[[], Any],
        name: str = "maji-config-refresh",
        on_exit: Callable[[], Any] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._interval = interval
        self._tick = tick
        self._name = name
        self._on_exit = on_exit
        self._state = SchedulerState.CREATED
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def cancelled(self) -> bool:
        """True once :meth:`stop` has been called."""
        return self._stop_event.is_set()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def tick_count(self) -> int:
        """Number of ticks that have run to completion, successful or not."""
        return self._tick_count

    def start(self) -> None:
        """Arm the timer and launch the background thread.

        Raises:
            ClientStateError: If already started or stopped.
        """
        with self._lock:
            if self._state is not SchedulerState.CREATED:
                raise ClientStateError(
                    current=self._state.value, action="start scheduler"
                )
            self._thread = threading.Thread(
                target=self._run, name=self._name, daemon=True
            )
            self._state = SchedulerState.STARTED
            self._thread.start()
        logger.debug(
            "Scheduler '%s' started (interval=%ss)", self._name, self._interval
        )

    def stop(self, wait: bool = False, timeout: float | None = None) -> None:
        """Cancel future ticks. Idempotent.

        A tick already running is not interrupted. With ``wait=True`` this
        blocks until it finishes, or until ``timeout`` seconds pass.
        """
        with self._lock:
            if self._state is SchedulerState.STOPPED:
                return
            self._state = SchedulerState.STOPPED
            self._stop_event.set()
            thread = self._thread

        logger.debug(
            "Scheduler '%s' stopped after %d ticks", self._name, self._tick_count
        )

        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        try:
            while not self._stop_event.wait(self._interval):
                try:
                    self._tick()
                except Exception:
                    logger.exception("Scheduler '%s' tick raised", self._name)
                self._tick_count += 1
        finally:
            if self._on_exit is not None:
                try:
                    self._on_exit()
                except Exception:
                    logger.exception("Scheduler '%s' exit hook raised", self._name)
