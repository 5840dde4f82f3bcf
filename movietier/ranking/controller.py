"""
Pairwise insertion of a movie into a user's ranked list.

A new movie is placed with a binary search over the existing list, one
comparison per HTTP round-trip. The search bounds live in a SessionStore
between requests; the list itself lives in a RankedListStore.

Bounds are 0-based indices into the existing list. Preferring the new movie
moves the upper bound above the pivot, preferring the pivot moves the lower
bound below it. Once low > high the new movie belongs at index `low`, i.e.
rank `low + 1`.
"""
import logging

from movietier.ranking.errors import (
    ComparisonTargetUnavailable,
    DuplicateItem,
    InvalidPreference,
    NoActiveSession,
    RankedItemNotFound,
)
from movietier.ranking.sessions import OwnerLocks, SessionStore
from movietier.ranking.store import RankedListStore
from movietier.schemas import Candidate, InsertionResult, Pivot


def middle(low: int, high: int) -> int:
    return (low + high) // 2


class InsertionController:
    def __init__(self, store: RankedListStore, sessions: SessionStore, locks: OwnerLocks):
        self.store = store
        self.sessions = sessions
        self.locks = locks

    def begin_insertion(self, owner, candidate: Candidate) -> InsertionResult:
        with self.locks.hold(owner):
            if self.store.find_by_item(owner, candidate.movie_id):
                logging.info(f"User {owner} tried to rank movie {candidate.movie_id} twice")
                raise DuplicateItem()
            return self._open(owner, candidate)

    def submit_comparison(self, owner, preferred_movie_id: int, compared_movie_id=None) -> InsertionResult:
        with self.locks.hold(owner):
            session = self.sessions.get(owner)
            if session is None:
                raise NoActiveSession()

            candidate = session.candidate
            preferred_is_candidate = preferred_movie_id == candidate.movie_id
            if (
                compared_movie_id is not None
                and not preferred_is_candidate
                and preferred_movie_id != compared_movie_id
            ):
                raise InvalidPreference()

            mid = middle(session.low, session.high)
            low, high = session.low, session.high
            if preferred_is_candidate:
                high = mid - 1
            else:
                low = mid + 1

            if low > high:
                rank = low + 1
                size = self.store.count(owner)
                if rank > size + 1:
                    self._abandon(owner, f"rank #{rank} no longer fits a list of {size}")
                # End the session only after the write commits
                self.store.insert_at_rank(owner, candidate, rank)
                self.sessions.end(owner)
                logging.info(f"User {owner} finished comparing movie {candidate.movie_id}: rank #{rank}")
                return InsertionResult.inserted(rank, candidate.movie_id)

            self.sessions.update(owner, low, high)
            return InsertionResult.compare(self._pivot(owner, middle(low, high)))

    def begin_rerank(self, owner, movie_id: int) -> InsertionResult:
        """Take an already ranked movie out of the list and place it again."""
        with self.locks.hold(owner):
            removed = self.store.remove_and_compact(owner, movie_id)
            if removed is None:
                raise RankedItemNotFound()
            candidate = Candidate(movie_id=removed.movie_id, title=removed.title, poster_path=removed.poster_path)
            return self._open(owner, candidate)

    def cancel(self, owner) -> bool:
        with self.locks.hold(owner):
            return self.sessions.end(owner)

    def remove(self, owner, movie_id: int):
        with self.locks.hold(owner):
            removed = self.store.remove_and_compact(owner, movie_id)
            if removed is None:
                raise RankedItemNotFound()
            # Bounds of an open comparison refer to the list before the delete
            if self.sessions.end(owner):
                logging.info(f"User {owner} removed movie {movie_id} mid-comparison, session ended")
            return removed

    def list_ranked(self, owner):
        return self.store.list(owner)

    # Callers hold the owner lock.
    def _open(self, owner, candidate: Candidate) -> InsertionResult:
        size = self.store.count(owner)
        if size == 0:
            self.store.insert_at_rank(owner, candidate, 1)
            return InsertionResult.inserted(1, candidate.movie_id)

        high = size - 1
        self.sessions.start(owner, candidate, high)
        logging.info(f"User {owner} started comparing movie {candidate.movie_id} against {size} ranked")
        return InsertionResult.compare(self._pivot(owner, middle(0, high)))

    def _pivot(self, owner, index: int) -> Pivot:
        entry = self.store.entry_at(owner, index)
        if entry is None:
            self._abandon(owner, f"no ranked movie at index {index}")
        return Pivot(movie_id=entry.movie_id, title=entry.title, poster_path=entry.poster_path)

    def _abandon(self, owner, reason: str):
        """Drops a session whose bounds no longer match the ranked list."""
        self.sessions.end(owner)
        logging.error(f"User {owner} comparison abandoned: {reason}")
        raise ComparisonTargetUnavailable()
