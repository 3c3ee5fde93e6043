# src/phaseconf/cache/result_cache.py
"""ResultCache: bounded TTL cache of successful secret sets.

Keyed by (app_name, environment, token_origin), so a credential change in a
different origin never serves stale secrets from the previous one.

- Expired entries are never returned (checked lazily on read)
- A full cache evicts the single oldest entry by insertion order; re-setting
  a key moves it to the newest position
- One lock guards the entry map; the sweeper holds it for a single pass
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import structlog

from phaseconf.contracts import CacheEntry, TokenOrigin

logger = structlog.get_logger(__name__)

CacheKey = tuple[str, str, TokenOrigin]


@dataclass(frozen=True, slots=True)
class CacheMetrics:
    hits: int
    misses: int
    evictions: int
    expirations: int
    size: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ResultCache:
    """Thread-safe FIFO cache with per-entry TTL.

    Args:
        max_entries: Capacity; setting a new key on a full cache evicts the oldest
        ttl_seconds: Default entry lifetime
        clock: Monotonic seconds source (injectable for tests)
    """

    def __init__(
        self,
        max_entries: int = 100,
        ttl_seconds: float = 300.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @staticmethod
    def make_key(app_name: str, environment: str, token_origin: TokenOrigin) -> CacheKey:
        return (app_name.strip(), environment.strip(), TokenOrigin(token_origin))

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, app_name: str, environment: str, token_origin: TokenOrigin) -> Mapping[str, str] | None:
        """Cached secrets, or None when absent or expired (expired entries are dropped)."""
        key = self.make_key(app_name, environment, token_origin)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def has(self, app_name: str, environment: str, token_origin: TokenOrigin) -> bool:
        """Presence check that does not touch hit/miss counters."""
        key = self.make_key(app_name, environment, token_origin)
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def set(
        self,
        app_name: str,
        environment: str,
        token_origin: TokenOrigin,
        secrets: Mapping[str, str],
        *,
        ttl_seconds: float | None = None,
    ) -> None:
        key = self.make_key(app_name, environment, token_origin)
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl}")
        entry = CacheEntry(
            key=key,
            value=MappingProxyType(dict(secrets)),
            stored_at=self._clock(),
            ttl_seconds=ttl,
        )
        evicted: CacheKey | None = None
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
            self._entries[key] = entry
        if evicted is not None:
            logger.debug("cache full, evicted oldest entry", app_name=evicted[0], environment=evicted[1])

    def sweep(self) -> int:
        """Remove every expired entry in one pass. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._expirations += len(expired)
        return len(expired)

    def invalidate(
        self,
        *,
        app_name: str | None = None,
        environment: str | None = None,
        token_origin: TokenOrigin | None = None,
    ) -> int:
        """Remove entries matching every given field (no fields: remove all)."""
        with self._lock:
            doomed = [
                key
                for key in self._entries
                if (app_name is None or key[0] == app_name.strip())
                and (environment is None or key[1] == environment.strip())
                and (token_origin is None or key[2] == token_origin)
            ]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries and reset metrics. Idempotent."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_metrics(self) -> CacheMetrics:
        with self._lock:
            return CacheMetrics(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                size=len(self._entries),
            )

    def status(self) -> dict[str, Any]:
        """Per-entry view for diagnostics: names, origin, age and time left."""
        with self._lock:
            now = self._clock()
            entries = [
                {
                    "app_name": key[0],
                    "environment": key[1],
                    "token_origin": str(key[2]),
                    "secret_count": len(entry.value),
                    "age_seconds": now - entry.stored_at,
                    "expires_in_seconds": max(0.0, entry.ttl_seconds - (now - entry.stored_at)),
                    "expired": entry.is_expired(now),
                }
                for key, entry in self._entries.items()
            ]
        return {
            "max_entries": self._max_entries,
            "ttl_seconds": self._ttl,
            "size": len(entries),
            "entries": entries,
        }
