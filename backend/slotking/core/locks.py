"""
Per-meeting mutual exclusion for ledger writes.

Two writers on the same meeting must not interleave their remove-old / insert-new
steps. Meetings never share a lock. A meeting's entry lives only while someone holds
or waits for its lock, so ids that do not exist leave nothing behind.
"""
import threading
from contextlib import contextmanager
from typing import Iterator


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0  # holders + waiters


_registry_lock = threading.Lock()
_locks: dict[str, _Entry] = {}


def _acquire_entry(meeting_key: str) -> _Entry:
    with _registry_lock:
        entry = _locks.get(meeting_key)
        if entry is None:
            entry = _Entry()
            _locks[meeting_key] = entry
        entry.users += 1
        return entry


def _release_entry(meeting_key: str, entry: _Entry) -> None:
    with _registry_lock:
        entry.users -= 1
        if entry.users == 0:
            del _locks[meeting_key]


@contextmanager
def meeting_lock(meeting_key: str) -> Iterator[None]:
    """Hold the write lock for one meeting (keyed by its public unique id)."""
    entry = _acquire_entry(meeting_key)
    try:
        with entry.lock:
            yield
    finally:
        _release_entry(meeting_key, entry)
