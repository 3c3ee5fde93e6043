# src/phaseconf/monitoring/buffer.py
"""Bounded ring buffer for monitor records and log entries.

- Ring buffer via deque(maxlen=N): automatic oldest-first eviction
- Overflow counted by checking was_full BEFORE append (deque evicts during)
- Aggregate logging every 100 drops instead of per drop
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BoundedBuffer(Generic[T]):
    """Ring buffer that drops the oldest item on overflow.

    Thread Safety:
        NOT thread-safe. The Monitor serializes access under its own lock.

    Example:
        buffer = BoundedBuffer[PerformanceRecord](max_size=1000)
        buffer.append(record)
        latest = buffer.snapshot()
    """

    _LOG_INTERVAL = 100

    def __init__(self, max_size: int = 1000, *, name: str = "buffer") -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._max_size = max_size
        self._buffer: deque[T] = deque(maxlen=max_size)
        self._name = name
        self._dropped_count = 0
        self._last_logged_drop_count = 0

    def append(self, item: T) -> None:
        was_full = len(self._buffer) == self._buffer.maxlen
        self._buffer.append(item)
        if was_full:
            self._dropped_count += 1
            if self._dropped_count - self._last_logged_drop_count >= self._LOG_INTERVAL:
                logger.debug(
                    "ring buffer overflow",
                    buffer=self._name,
                    dropped_since_last_log=self._dropped_count - self._last_logged_drop_count,
                    total_dropped=self._dropped_count,
                )
                self._last_logged_drop_count = self._dropped_count

    def snapshot(self) -> list[T]:
        """Oldest-first copy of the current contents."""
        return list(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()
        self._dropped_count = 0
        self._last_logged_drop_count = 0

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def dropped_count(self) -> int:
        return self._dropped_count
