"""
Bounded LRU Cache

Process-wide embedding cache keyed by content hash. Mutations happen on
the event loop thread only, so no locking is needed; concurrent misses for
the same key may both compute and store an equal value.
"""

from collections import OrderedDict
from typing import Generic, Optional, TypeVar

V = TypeVar("V")


class LRUCache(Generic[V]):
    """Least-recently-used cache with a fixed entry cap."""

    def __init__(self, max_size: int = 1000):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: OrderedDict[str, V] = OrderedDict()

    def get(self, key: str) -> Optional[V]:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, key: str, value: V) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        return {"size": len(self._entries), "max_size": self.max_size}
