# src/phaseconf/cache/sweeper.py
"""Background task that periodically sweeps expired cache entries.

Started and stopped explicitly by the composition root; nothing runs on
import. The thread is a daemon so a forgotten stop() cannot hang shutdown.
"""

from __future__ import annotations

import threading

import structlog

from phaseconf.cache.result_cache import ResultCache

logger = structlog.get_logger(__name__)


class CacheSweeper:
    """Runs ``cache.sweep()`` every ``interval_seconds`` until stopped.

    Example:
        sweeper = CacheSweeper(cache, interval_seconds=60)
        sweeper.start()
        ...
        sweeper.stop()
    """

    def __init__(self, cache: ResultCache, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self._cache = cache
        self._interval = interval_seconds
        self._shutdown_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._passes = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def passes(self) -> int:
        """Completed sweep passes since construction."""
        return self._passes

    def start(self) -> None:
        """Start the sweep thread. No-op when already running."""
        with self._lock:
            if self.is_running:
                return
            self._shutdown_event.clear()
            self._thread = threading.Thread(target=self._run, name="phaseconf-cache-sweeper", daemon=True)
            self._thread.start()
        logger.debug("cache sweeper started", interval_seconds=self._interval)

    def _run(self) -> None:
        # wait() returns True once shutdown is signalled
        while not self._shutdown_event.wait(self._interval):
            try:
                removed = self._cache.sweep()
            except Exception as e:
                logger.error("cache sweep failed", error_type=type(e).__name__, error=str(e))
                continue
            self._passes += 1
            if removed:
                logger.debug("cache sweep removed expired entries", removed=removed)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal shutdown and join the thread. Idempotent."""
        with self._lock:
            thread = self._thread
            self._shutdown_event.set()
            self._thread = None
        if thread is not None:
            thread.join(timeout=timeout)
            logger.debug("cache sweeper stopped")
