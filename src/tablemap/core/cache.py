"""
Thread-safe mapping cache used for table mappings and generated SQL.

Every ``TableMapper`` owns a handful of these: one for table mappings keyed
by record type, and one per statement kind for the SQL built from those
mappings. Entries are immutable once written, so the cache never has to
invalidate anything; it only has to make sure all threads agree on a single
value per key.

Manifesto:
    - **First writer wins:** ``put`` never replaces an existing value
    - **Redundant work is fine:** two threads may build the same value,
      only one is kept and both callers receive that one
    - **Soft capacity:** bounded caches check size then insert, the two
      steps are not atomic, so the limit can be overshot under contention
    - **Zero config:** unbounded by default

Architecture:
    ::

        MappingCache
        ├── put(key, value)   → value actually stored (existing or new)
        ├── get(key)          → value | None
        ├── contains(key)     → bool
        ├── remove(key)
        ├── size()
        └── clear()

Examples:
    >>> cache = MappingCache()
    >>> cache.put("orders", "first")
    'first'
    >>> cache.put("orders", "second")
    'first'
    >>> bounded = MappingCache(capacity=1)
    >>> bounded.put("a", 1)
    1
    >>> bounded.put("b", 2)
    2
    >>> bounded.contains("b")
    False

Guardrails:
    ❌ DON'T: Rely on ``capacity`` as a hard upper bound
    ✅ DO: Treat it as a best-effort limit that stops runaway growth

    ❌ DON'T: Store mutable values you intend to change later
    ✅ DO: Store frozen dataclasses and strings

Tags:
    cache, memoization, thread-safety, tablemap

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import threading
from collections.abc import Hashable
from typing import Any


class MappingCache:
    """Key → value store with first-writer-wins insertion.

    Reads go straight to the underlying ``dict``; the lock only guards
    ``clear`` against a concurrent ``setdefault``.

    Attributes:
        capacity: Maximum number of entries (``None`` → unbounded).

    Example:
        cache = MappingCache(capacity=2000)
        sql = cache.get(key) or cache.put(key, build_sql())
    """

    def __init__(self, capacity: int | None = None):
        """Initialize the cache.

        Args:
            capacity: Soft upper bound on the number of entries. When the
                cache is full ``put`` returns the offered value without
                storing it. ``None`` disables the bound.

        Raises:
            ValueError: If ``capacity`` is negative.
        """
        if capacity is not None and capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._store: dict[Hashable, Any] = {}
        self._capacity = capacity
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int | None:
        return self._capacity

    def get(self, key: Hashable) -> Any | None:
        """Retrieve a value by key, ``None`` when absent."""
        return self._store.get(key)

    def put(self, key: Hashable, value: Any) -> Any:
        """Insert ``value`` unless ``key`` is already present.

        Args:
            key: Cache key.
            value: Value to store.

        Returns:
            The value associated with ``key`` after the call: the existing
            one if another writer got there first, the offered one otherwise
            (also when the cache is full and nothing was stored).
        """
        if self._capacity is not None and len(self._store) >= self._capacity:
            existing = self._store.get(key)
            return value if existing is None else existing
        with self._lock:
            return self._store.setdefault(key, value)

    def contains(self, key: Hashable) -> bool:
        """Check if a key is present."""
        return key in self._store

    def remove(self, key: Hashable) -> None:
        """Remove a key. No-op if it does not exist."""
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all keys."""
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys."""
        return len(self._store)

    def __len__(self) -> int:
        return len(self._store)


__all__ = ["MappingCache"]
