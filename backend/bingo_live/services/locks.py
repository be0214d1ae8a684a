import threading
from contextlib import contextmanager
from typing import Dict, List


class SessionLocks:
    """One re-entrant lock per session id.

    Every read-modify-write of a session (draw, claim, pause, roster
    changes...) runs under that session's lock so only one mutation commits
    at a time and broadcasts go out in commit order.

    An entry only lives while some thread holds or waits on it, so ids that
    never existed and sessions nobody touches anymore leave nothing behind.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # session id -> [lock, holders + waiters]
        self._locks: Dict[str, List] = {}

    @contextmanager
    def hold(self, session_id: str):
        with self._guard:
            entry = self._locks.get(session_id)
            if entry is None:
                entry = self._locks[session_id] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[session_id]

    def __contains__(self, session_id: str) -> bool:
        with self._guard:
            return session_id in self._locks

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
