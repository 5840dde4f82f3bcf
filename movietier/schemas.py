from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Candidate(BaseModel):
    movie_id: int
    title: str = Field(..., min_length=1)
    poster_path: Optional[str] = None


class Pivot(BaseModel):
    movie_id: int
    title: str
    poster_path: Optional[str] = None


class InsertionResult(BaseModel):
    """Either a finished placement ("inserted") or the next pivot to compare ("compare")."""
    status: str
    rank: Optional[int] = None
    movie_id: Optional[int] = None
    pivot: Optional[Pivot] = None

    @classmethod
    def inserted(cls, rank: int, movie_id: int):
        return cls(status="inserted", rank=rank, movie_id=movie_id)

    @classmethod
    def compare(cls, pivot: Pivot):
        return cls(status="compare", pivot=pivot)

    def as_response(self) -> dict:
        if self.status == "inserted":
            return {"status": self.status, "rank": self.rank, "movie_id": self.movie_id}
        return {"status": self.status, "pivot": self.pivot.model_dump()}


class ComparisonSession(BaseModel):
    owner: int
    candidate: Candidate
    low: int = 0
    high: int


class RankedEntry(BaseModel):
    movie_id: int
    title: str
    poster_path: Optional[str] = None
    rank: int

    model_config = {"from_attributes": True}


# --- REQUESTS ---
class AddMovieRequest(Candidate):
    pass


class CompareRequest(BaseModel):
    compared_movie_id: Optional[int] = None
    preferred_movie_id: int


class RerankRequest(BaseModel):
    movie_id: int


class WatchlistRequest(BaseModel):
    movie_id: int
    title: str = Field(..., min_length=1)
    poster_path: Optional[str] = None


class GoogleAuthRequest(BaseModel):
    credential: str  # Google ID Token


# --- RESPONSES ---
class UserOut(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    picture: Optional[str] = None

    model_config = {"from_attributes": True}


class FeedItem(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    user_picture: Optional[str] = None
    movie_id: int
    title: Optional[str] = None
    poster_path: Optional[str] = None
    rank: Optional[int] = None
    created_at: datetime


class MovieResult(BaseModel):
    movie_id: int
    title: str
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: Optional[float] = None


class MovieDetails(MovieResult):
    runtime: Optional[int] = None
    genres: List[str] = []
    cast: List[str] = []
