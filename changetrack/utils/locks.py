from __future__ import annotations
from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, Tuple


class KeyedLocks:
    """
    One mutex per key, created on demand and dropped when the last holder
    leaves. Holders of different keys never wait on each other.
    """

    def __init__(self):
        self._guard = Lock()
        self._locks: Dict[str, Tuple[Lock, int]] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = Lock()
            self._locks[key] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                _, users = self._locks[key]
                if users <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
