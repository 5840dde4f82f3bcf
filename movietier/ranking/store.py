import logging

from sqlalchemy.orm import Session

from movietier.models import RankedMovie
from movietier.schemas import Candidate, RankedEntry


class RankedListStore:
    """Durable per-user ranked list backed by the `ranked_movies` table.

    Every mutating call commits exactly once and rolls back on any failure,
    so a rank shift is never visible without its matching insert or delete.

    `on_insert(db, row)` runs before the insert commits; rows it adds to the
    session are committed or rolled back together with the ranking.
    """

    def __init__(self, db: Session, on_insert=None):
        self.db = db
        self.on_insert = on_insert

    def _query(self, owner: int):
        return self.db.query(RankedMovie).filter(RankedMovie.user_id == owner)

    def list(self, owner: int):
        rows = self._query(owner).order_by(RankedMovie.rank.asc()).all()
        return [RankedEntry.model_validate(row) for row in rows]

    def count(self, owner: int) -> int:
        return self._query(owner).count()

    def find_by_item(self, owner: int, movie_id: int):
        row = self._query(owner).filter(RankedMovie.movie_id == movie_id).first()
        return RankedEntry.model_validate(row) if row else None

    def entry_at(self, owner: int, index: int):
        """0-based positional lookup; None when the index is past the end."""
        if index < 0:
            return None
        row = self._query(owner).order_by(RankedMovie.rank.asc()).offset(index).first()
        return RankedEntry.model_validate(row) if row else None

    def insert_at_rank(self, owner: int, candidate: Candidate, rank: int) -> RankedEntry:
        size = self.count(owner)
        if rank < 1 or rank > size + 1:
            raise ValueError(f"rank {rank} outside 1..{size + 1}")

        try:
            self._query(owner).filter(RankedMovie.rank >= rank).update(
                {RankedMovie.rank: RankedMovie.rank + 1}, synchronize_session=False
            )
            row = RankedMovie(
                user_id=owner,
                movie_id=candidate.movie_id,
                title=candidate.title,
                poster_path=candidate.poster_path,
                rank=rank,
            )
            self.db.add(row)
            if self.on_insert:
                self.on_insert(self.db, row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(row)
        logging.info(f"User {owner} ranked movie {candidate.movie_id} at #{rank}")
        return RankedEntry.model_validate(row)

    def remove_and_compact(self, owner: int, movie_id: int):
        row = self._query(owner).filter(RankedMovie.movie_id == movie_id).first()
        if not row:
            return None

        removed = RankedEntry.model_validate(row)
        try:
            self.db.delete(row)
            self.db.flush()
            self._query(owner).filter(RankedMovie.rank > removed.rank).update(
                {RankedMovie.rank: RankedMovie.rank - 1}, synchronize_session=False
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logging.info(f"User {owner} removed movie {movie_id} from #{removed.rank}")
        return removed
