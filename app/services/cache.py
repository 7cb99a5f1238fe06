"""In-process result cache with a fixed TTL and a FIFO capacity bound.

HOW IT IS USED
---------------
Progress reports are read-through cached:

    Client → cache hit  → return
    Client → cache miss → read store → aggregate → store in cache → return

Reports are derived data.  They are replaced wholesale on the next miss
and never patched in place, so the cache holds immutable values and a
stale entry is simply dropped.

EXPIRY
-------
An entry inserted at time T is served for reads at T' with T' - T < TTL
and is a miss from T' - T >= TTL on.  There is no sweeper thread: an
expired entry is removed by the ``get`` that finds it, or pushed out by
capacity eviction.

CAPACITY
---------
When a ``put`` would grow the cache past ``max_entries``, the single
oldest-INSERTED entry is evicted first.  This is FIFO, not LRU: reads do
not refresh an entry's position.  Re-putting an existing key counts as a
fresh insertion and moves it to the back of the queue.

SCOPE
------
One instance per process, created at application start-up and handed to
services through dependencies.  Nothing is shared across processes; a
restart starts cold.  A lock guards the map so concurrent requests can
read and insert safely.  Two requests that miss on the same key at the
same time both rebuild the report; the later ``put`` wins.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

from app.core.metrics import CACHE_ENTRIES, CACHE_OPERATIONS

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """Thread-safe TTL cache with oldest-inserted-first eviction.

    ``clock`` returns seconds and defaults to ``time.monotonic``; tests
    pass a fake clock to step time deterministically.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        max_entries: int,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive (got {ttl_seconds})")
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive (got {max_entries})")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (inserted_at, value), in insertion order
        self._entries: OrderedDict[K, tuple[float, V]] = OrderedDict()

    def get(self, key: K) -> V | None:
        """Return the cached value, or None on a miss or an expired entry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                CACHE_OPERATIONS.labels(cache=self.name, operation="miss").inc()
                return None

            inserted_at, value = entry
            if self._clock() - inserted_at >= self.ttl_seconds:
                del self._entries[key]
                self._record_size()
                CACHE_OPERATIONS.labels(cache=self.name, operation="expired").inc()
                return None

            CACHE_OPERATIONS.labels(cache=self.name, operation="hit").inc()
            return value

    def put(self, key: K, value: V) -> None:
        """Insert ``value`` stamped with the current time."""
        with self._lock:
            self._entries.pop(key, None)
            if len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
                CACHE_OPERATIONS.labels(cache=self.name, operation="evicted").inc()
            self._entries[key] = (self._clock(), value)
            self._record_size()
            CACHE_OPERATIONS.labels(cache=self.name, operation="store").inc()

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._record_size()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._record_size()

    def keys(self) -> list[K]:
        """Keys in insertion order, stale ones included."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def _record_size(self) -> None:
        CACHE_ENTRIES.labels(cache=self.name).set(len(self._entries))
