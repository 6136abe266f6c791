"""Cancellable periodic task used to run anomaly scans off the ingestion path."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicScan:
    """Runs ``task`` every ``interval_seconds`` on a daemon thread.

    ``stop()`` may be called at any time, any number of times; a scan in
    progress finishes and no further scans are scheduled.
    """

    def __init__(
        self,
        task: Callable[[], Any],
        interval_seconds: float = 60.0,
        name: str = "aactrack-anomaly-scan",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._task = task
        self._interval = interval_seconds
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._run_count = 0
        self._failure_count = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def run_count(self) -> int:
        with self._lock:
            return self._run_count

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("PeriodicScan can only be started once")
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        logger.info("Periodic scan '%s' started (every %.1fs)", self._name, self._interval)

    def run_once(self) -> None:
        """Run the task immediately on the calling thread."""
        failed = False
        try:
            self._task()
        except Exception:
            failed = True
            logger.exception("Periodic scan '%s' failed", self._name)
        with self._lock:
            self._run_count += 1
            if failed:
                self._failure_count += 1

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.run_once()
        logger.debug("Periodic scan '%s' loop exited", self._name)

    def stop(self, timeout: float | None = None) -> None:
        """Stop scheduling further scans and wait for the thread to exit."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("Periodic scan '%s' stopped", self._name)


__all__ = ["PeriodicScan"]
