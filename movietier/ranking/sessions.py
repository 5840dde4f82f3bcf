import logging
import threading
from contextlib import contextmanager

from movietier.schemas import Candidate, ComparisonSession


class SessionStore:
    """Keyed store of in-progress comparison sessions, one per owner.

    The in-memory implementation below is enough for a single process.
    A multi-instance deployment needs an implementation backed by shared
    storage (with a TTL), or sticky routing per owner.
    """

    def start(self, owner, candidate: Candidate, high: int) -> ComparisonSession:
        raise NotImplementedError

    def get(self, owner):
        raise NotImplementedError

    def update(self, owner, low: int, high: int):
        raise NotImplementedError

    def end(self, owner):
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions = {}
        self._lock = threading.Lock()

    def start(self, owner, candidate: Candidate, high: int) -> ComparisonSession:
        session = ComparisonSession(owner=owner, candidate=candidate, low=0, high=high)
        with self._lock:
            previous = self._sessions.get(owner)
            self._sessions[owner] = session
        if previous is not None:
            # Last write wins: the abandoned comparison is discarded
            logging.warning(
                f"User {owner} replaced comparison for movie {previous.candidate.movie_id} "
                f"with movie {candidate.movie_id}"
            )
        return session.model_copy(deep=True)

    def get(self, owner):
        with self._lock:
            session = self._sessions.get(owner)
            return session.model_copy(deep=True) if session else None

    def update(self, owner, low: int, high: int):
        with self._lock:
            session = self._sessions.get(owner)
            if session is None:
                return
            session.low = low
            session.high = high

    def end(self, owner):
        with self._lock:
            return self._sessions.pop(owner, None) is not None

    def __len__(self):
        with self._lock:
            return len(self._sessions)


class OwnerLocks:
    """One lock per owner so a user's ranking requests run one at a time.

    An owner's lock is dropped once nobody holds or waits on it.
    """

    def __init__(self):
        self._locks = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def hold(self, owner):
        with self._registry_lock:
            entry = self._locks.get(owner)
            if entry is None:
                entry = self._locks[owner] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._registry_lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[owner]

    def __len__(self):
        with self._registry_lock:
            return len(self._locks)
