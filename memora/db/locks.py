"""
Keyed mutual exclusion.

Serializes read-modify-write cycles on the same state key
(`memory:{student}:{item}`, `mastery:{student}:{unit}`, `session:{id}`)
inside one process. Different keys never block each other. Cross-process
races are caught by the version column on the state rows and by row locks on
the session.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLock:
    """Reference-counted lock per key; idle keys are dropped."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._waiters: dict[str, int] = {}

    def _acquire_entry(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._waiters[key] = self._waiters.get(key, 0) + 1
        return lock

    def _release_entry(self, key: str) -> None:
        with self._guard:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Hold every key at once. Keys are taken in sorted order to avoid deadlock."""
        ordered = sorted(set(keys))
        held: list[tuple[str, threading.Lock]] = []
        try:
            for key in ordered:
                lock = self._acquire_entry(key)
                try:
                    lock.acquire()
                except BaseException:
                    self._release_entry(key)
                    raise
                held.append((key, lock))
            yield
        finally:
            for key, lock in reversed(held):
                lock.release()
                self._release_entry(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


def memory_key(student_id: str, item_id: str) -> str:
    return f"memory:{student_id}:{item_id}"


def mastery_key(student_id: str, unit_id: str) -> str:
    return f"mastery:{student_id}:{unit_id}"


def session_key(session_id: str) -> str:
    return f"session:{session_id}"
