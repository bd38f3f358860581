import threading
from contextlib import contextmanager

from spacebooking.errors import SpaceBusyError


class SpaceLockRegistry:
    """
    Mutual exclusion keyed by space id.

    Serializes the check-then-insert region of admission control for one space
    inside this process. Requests for different spaces never wait on each other.
    """

    def __init__(self):
        self._locks = {}
        self._guard = threading.Lock()

    def _lock_for(self, space_id) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(space_id)
            if lock is None:
                lock = self._locks[space_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, space_id, timeout: float):
        lock = self._lock_for(space_id)
        if not lock.acquire(timeout=timeout):
            raise SpaceBusyError(space_id, timeout)
        try:
            yield
        finally:
            lock.release()
