from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from movietier.database import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    picture = Column(String)
    google_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    ranked_movies = relationship("RankedMovie", back_populates="user", order_by="RankedMovie.rank")

    # Relationships for Social
    followers = relationship("Follower", foreign_keys="Follower.followed_id", back_populates="followed")
    following = relationship("Follower", foreign_keys="Follower.follower_id", back_populates="follower")


class Follower(Base):
    __tablename__ = "followers"
    __table_args__ = (UniqueConstraint("follower_id", "followed_id", name="uq_follow_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    follower_id = Column(Integer, ForeignKey("users.id"))
    followed_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)

    follower = relationship("User", foreign_keys=[follower_id], back_populates="following")
    followed = relationship("User", foreign_keys=[followed_id], back_populates="followers")


class RankedMovie(Base):
    """One user's placement of one TMDB movie. Ranks per user are always 1..N."""
    __tablename__ = "ranked_movies"
    # No unique constraint on rank: the bulk shift passes through transient duplicates
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_ranked_user_movie"),
        Index("ix_ranked_user_rank", "user_id", "rank"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    movie_id = Column(Integer, nullable=False)  # TMDB id
    title = Column(String, nullable=False)
    poster_path = Column(String, nullable=True)
    rank = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="ranked_movies")


class FeedActivity(Base):
    __tablename__ = "feed_activities"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    activity_type = Column(String, default="ranked_movie")
    movie_id = Column(Integer, nullable=False)
    title = Column(String)
    poster_path = Column(String, nullable=True)
    rank = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User")


class WatchlistItem(Base):
    __tablename__ = "watchlist"
    __table_args__ = (UniqueConstraint("user_id", "movie_id", name="uq_watchlist_user_movie"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    movie_id = Column(Integer, nullable=False)
    title = Column(String)
    poster_path = Column(String, nullable=True)
    added_at = Column(DateTime, default=datetime.utcnow)
