"""Keyed in-process locks.

Serializes work on a single variant or order within one process. Across
processes the optimistic version check on the aggregate takes over.
"""

import threading
from contextlib import contextmanager


class KeyedLock:
    """One re-entrant lock per key, dropped once no thread holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, number of holders and waiters]
        self._locks: dict[str, list] = {}

    def _acquire_slot(self, key: str) -> threading.RLock:
        with self._guard:
            slot = self._locks.get(key)
            if slot is None:
                slot = self._locks[key] = [threading.RLock(), 0]
            slot[1] += 1
            return slot[0]

    def _release_slot(self, key: str) -> None:
        with self._guard:
            slot = self._locks[key]
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *parts):
        key = ":".join(str(part) for part in parts)
        lock = self._acquire_slot(key)
        try:
            with lock:
                yield
        finally:
            self._release_slot(key)

    def __len__(self):
        with self._guard:
            return len(self._locks)


variant_locks = KeyedLock()
order_locks = KeyedLock()
