"""
In-memory cache tier.
"""

import collections
from typing import List, Optional, Tuple

from shared.logging import get_logger


class MemoryTier:
    """Bounded LRU map from key to bytes.

    Not thread-safe; a TierWorker owns each instance and serializes access.

    ``generation`` advances on every write, removal and clear. A caller that
    looked a key up and then fetched a value elsewhere passes the generation
    it saw to ``promote``, which refuses to insert if memory changed since.
    """

    name = "memory"

    def __init__(self, max_entries: int = 100):
        self.max_entries = max(1, int(max_entries))
        self.logger = get_logger("tiered_cache.tiers.memory")
        self._store: "collections.OrderedDict[str, bytes]" = collections.OrderedDict()
        self.evictions = 0
        self.generation = 0

    def get(self, key: str) -> Optional[bytes]:
        """Return the value and mark it most recently used."""
        if key not in self._store:
            return None
        self._store.move_to_end(key)
        return self._store[key]

    def lookup(self, key: str) -> Tuple[Optional[bytes], int]:
        """Like get, but also returns the current generation."""
        return self.get(key), self.generation

    def set(self, key: str, value: bytes) -> List[str]:
        """Insert or replace a value, returning the keys evicted to make room."""
        evicted: List[str] = []
        self.generation += 1
        if key in self._store:
            self._store.move_to_end(key)
        else:
            while len(self._store) >= self.max_entries:
                old_key, _ = self._store.popitem(last=False)
                evicted.append(old_key)
        self._store[key] = value

        if evicted:
            self.evictions += len(evicted)
            self.logger.debug("Evicted memory entries", evicted=evicted, size=len(self._store))
        return evicted

    def promote(self, key: str, value: bytes, generation: int) -> Optional[List[str]]:
        """Insert a value fetched from a slower tier.

        Skipped, returning None, when the key is already present or memory
        changed after ``generation`` was observed.
        """
        if generation != self.generation or key in self._store:
            return None
        return self.set(key, value)

    def remove(self, key: str) -> bool:
        """Remove a key; returns whether it was present."""
        self.generation += 1
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        self.generation += 1
        self._store.clear()

    def contains(self, key: str) -> bool:
        """Membership check that does not touch recency."""
        return key in self._store

    def keys(self) -> List[str]:
        """Keys from least to most recently used."""
        return list(self._store.keys())

    def size(self) -> int:
        return len(self._store)
