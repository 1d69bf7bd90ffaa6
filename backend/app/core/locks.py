"""Process-local mutual exclusion keyed by an arbitrary string."""

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock


class LockTimeoutError(TimeoutError):
    """Raised when a keyed lock could not be acquired in time."""


class KeyedLock:
    """A registry of locks, one per key, created on demand.

    Entries are reference counted and dropped once no caller holds or waits
    on them, so the registry does not grow with the number of keys seen.
    """

    def __init__(self) -> None:
        self._locks: dict[str, tuple[Lock, int]] = {}
        self._guard = Lock()

    def _checkout(self, key: str) -> Lock:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = Lock()
            self._locks[key] = (lock, users + 1)
            return lock

    def _release(self, key: str) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for ``key``; ``timeout`` of None waits forever."""
        lock = self._checkout(key)
        try:
            acquired = lock.acquire(timeout=-1 if timeout is None else max(timeout, 0))
            if not acquired:
                raise LockTimeoutError(f"Timed out waiting for lock {key!r}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
