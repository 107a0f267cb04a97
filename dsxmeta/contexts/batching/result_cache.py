"""
Result cache for parsed documents.

Keyed by (document name, modification timestamp). Insertion is
first-writer-wins under a lock, so concurrent workers racing on one key
all end up returning the same stored result and no partial entry is
ever visible.
"""

import threading
from typing import Dict, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")


class ResultCache(Generic[T]):
    """
    Thread-safe cache of per-document results.

    Example:
        >>> cache = ResultCache()
        >>> cache.put(("job.dsx", "2025-01-01T00:00:00+00:00"), "result")
        'result'
        >>> ("job.dsx", "2025-01-01T00:00:00+00:00") in cache
        True
    """

    def __init__(self):
        self._entries: Dict[Hashable, T] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[T]:
        """Return the cached result or None."""
        with self._lock:
            return self._entries.get(key)

    def put(self, key: Hashable, result: T) -> T:
        """
        Store a result unless the key is already present.

        Returns:
            The stored result (the earlier one when the key already existed)
        """
        with self._lock:
            return self._entries.setdefault(key, result)

    def clear(self) -> None:
        """Evict all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries
