"""hydrator.core.scheduler

Named, cancelable timers.

The orchestrator owns exactly one of these. Nothing runs after `shutdown()`:
pending timers are canceled and in-progress backoff sleeps wake up early.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class _Job:
    name: str
    timer: threading.Timer
    interval_s: float | None  # None = one-shot


class Scheduler:
    """`threading.Timer` jobs keyed by name; re-scheduling a name replaces it."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._jobs: dict[str, _Job] = {}
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def call_later(self, name: str, delay_s: float, fn: Callable[[], object]) -> bool:
        """Run ``fn`` once after ``delay_s``. Returns False if the scheduler is shut down."""

        return self._arm(name, delay_s, fn, interval_s=None)

    def call_every(self, name: str, interval_s: float, fn: Callable[[], object]) -> bool:
        """Run ``fn`` every ``interval_s`` until canceled."""

        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        return self._arm(name, interval_s, fn, interval_s=interval_s)

    def _arm(self, name: str, delay_s: float, fn: Callable[[], object], *, interval_s: float | None) -> bool:
        with self._lock:
            if self._stopped.is_set():
                return False
            self._cancel_locked(name)
            timer = threading.Timer(max(delay_s, 0.0), self._fire, args=(name, fn))
            timer.daemon = True
            job = _Job(name=name, timer=timer, interval_s=interval_s)
            self._jobs[name] = job
            timer.start()
            return True

    def _fire(self, name: str, fn: Callable[[], object]) -> None:
        with self._lock:
            job = self._jobs.get(name)
            if job is None or job.timer is not threading.current_thread() or self._stopped.is_set():
                return
            if job.interval_s is None:
                del self._jobs[name]

        try:
            fn()
        except Exception:  # noqa: BLE001 - timer thread boundary
            logger.exception("scheduled_job_failed", extra={"job": name})

        if job.interval_s is not None:
            with self._lock:
                if self._jobs.get(name) is job and not self._stopped.is_set():
                    self._arm(name, job.interval_s, fn, interval_s=job.interval_s)

    def cancel(self, name: str) -> None:
        with self._lock:
            self._cancel_locked(name)

    def _cancel_locked(self, name: str) -> None:
        job = self._jobs.pop(name, None)
        if job is not None:
            job.timer.cancel()

    def is_scheduled(self, name: str) -> bool:
        with self._lock:
            return name in self._jobs

    def sleep(self, seconds: float) -> bool:
        """Block for ``seconds``. Returns False if interrupted by `shutdown()`."""

        if seconds <= 0:
            return not self._stopped.is_set()
        return not self._stopped.wait(seconds)

    def shutdown(self) -> None:
        with self._lock:
            self._stopped.set()
            for name in list(self._jobs):
                self._cancel_locked(name)
