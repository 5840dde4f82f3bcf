import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from movietier import config, tmdb
from movietier.auth import get_current_user, sign_in_with_google
from movietier.database import get_db, init_db
from movietier.models import FeedActivity, Follower, RankedMovie, User, WatchlistItem
from movietier.ranking.controller import InsertionController
from movietier.ranking.errors import RankingError
from movietier.ranking.sessions import InMemorySessionStore, OwnerLocks
from movietier.ranking.store import RankedListStore
from movietier.schemas import (
    AddMovieRequest,
    CompareRequest,
    FeedItem,
    GoogleAuthRequest,
    MovieDetails,
    MovieResult,
    RankedEntry,
    RerankRequest,
    UserOut,
    WatchlistRequest,
)

# --- LOGGING SETUP ---
logging.basicConfig(
    filename=config.LOG_FILE,
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.validate_config()
    init_db()
    yield


app = FastAPI(title="MovieTier", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RankingError)
async def ranking_error_handler(request: Request, exc: RankingError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "kind": exc.kind})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors()), "kind": "InvalidRequest"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logging.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "kind": "InternalError"})


# --- RANKING DEPENDENCIES ---
# Sessions live in process memory: a restart drops in-flight comparisons.
comparison_sessions = InMemorySessionStore()
owner_locks = OwnerLocks()


def get_session_store():
    return comparison_sessions


def get_owner_locks():
    return owner_locks


def get_controller(
    db: Session = Depends(get_db),
    sessions=Depends(get_session_store),
    locks=Depends(get_owner_locks),
):
    return InsertionController(RankedListStore(db, on_insert=stage_ranking_activity), sessions, locks)


# --- SIDE EFFECTS ---
def remove_from_watchlist(db: Session, user_id: int, movie_id: int):
    deleted = db.query(WatchlistItem).filter(
        WatchlistItem.user_id == user_id,
        WatchlistItem.movie_id == movie_id
    ).delete(synchronize_session=False)
    db.commit()
    return deleted


def stage_ranking_activity(db: Session, row: RankedMovie):
    # Committed by the store together with the ranked row
    db.add(FeedActivity(
        user_id=row.user_id,
        activity_type="ranked_movie",
        movie_id=row.movie_id,
        title=row.title,
        poster_path=row.poster_path,
        rank=row.rank,
    ))


def remove_ranking_activity(db: Session, user_id: int, movie_id: int):
    db.query(FeedActivity).filter(
        FeedActivity.user_id == user_id,
        FeedActivity.movie_id == movie_id
    ).delete(synchronize_session=False)
    db.commit()


@app.get("/api/health")
def health_check():
    return {"status": "ok"}


# --- AUTH ROUTES ---
@app.post("/api/auth/google")
def google_login(request: GoogleAuthRequest, db: Session = Depends(get_db)):
    try:
        user, access_token = sign_in_with_google(db, request.credential)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid Google Token")
    return {"access_token": access_token, "token_type": "bearer", "user": UserOut.model_validate(user)}


@app.get("/api/users/me", response_model=UserOut)
def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user


# --- MOVIE CATALOG (TMDB) ---
@app.get("/api/movies/search", response_model=List[MovieResult])
async def search_movies(q: str = "", current_user: User = Depends(get_current_user)):
    q = q.strip()
    if len(q) < 2:
        raise HTTPException(status_code=400, detail="Query must be at least 2 characters")
    try:
        return await tmdb.search_movies(q)
    except tmdb.TMDBError:
        raise HTTPException(status_code=502, detail="Movie catalog unavailable")


@app.get("/api/movies/{movie_id}/details", response_model=MovieDetails)
async def movie_details(movie_id: int, current_user: User = Depends(get_current_user)):
    try:
        return await tmdb.get_movie_details(movie_id)
    except tmdb.TMDBError:
        raise HTTPException(status_code=502, detail="Movie catalog unavailable")


# --- RANKING ---
@app.get("/api/movies/ranked", response_model=List[RankedEntry])
def get_ranked_movies(
    current_user: User = Depends(get_current_user),
    controller: InsertionController = Depends(get_controller),
):
    return controller.list_ranked(current_user.id)


@app.post("/api/movies/add")
def add_movie(
    request: AddMovieRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    controller: InsertionController = Depends(get_controller),
):
    result = controller.begin_insertion(current_user.id, request)
    remove_from_watchlist(db, current_user.id, request.movie_id)
    return result.as_response()


@app.post("/api/movies/compare")
def compare_movies(
    request: CompareRequest,
    current_user: User = Depends(get_current_user),
    controller: InsertionController = Depends(get_controller),
):
    result = controller.submit_comparison(
        current_user.id, request.preferred_movie_id, compared_movie_id=request.compared_movie_id
    )
    return result.as_response()


@app.post("/api/movies/compare/cancel")
def cancel_comparison(
    current_user: User = Depends(get_current_user),
    controller: InsertionController = Depends(get_controller),
):
    return {"cancelled": controller.cancel(current_user.id)}


@app.post("/api/movies/rerank/start")
def start_rerank(
    request: RerankRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    controller: InsertionController = Depends(get_controller),
):
    # The old rank leaves the feed; the new one is posted when placement finishes
    remove_ranking_activity(db, current_user.id, request.movie_id)
    result = controller.begin_rerank(current_user.id, request.movie_id)
    return result.as_response()


@app.delete("/api/movies/ranked/{movie_id}")
def delete_ranked_movie(
    movie_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    controller: InsertionController = Depends(get_controller),
):
    removed = controller.remove(current_user.id, movie_id)
    remove_ranking_activity(db, current_user.id, movie_id)
    return {"status": "deleted", "movie_id": movie_id, "rank": removed.rank}


# --- WATCHLIST ---
@app.get("/api/watchlist")
def get_watchlist(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    items = db.query(WatchlistItem).filter(WatchlistItem.user_id == current_user.id).order_by(WatchlistItem.added_at.desc()).all()
    return [{"movie_id": i.movie_id, "title": i.title, "poster_path": i.poster_path} for i in items]


@app.post("/api/watchlist", status_code=201)
def add_to_watchlist(request: WatchlistRequest, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    existing = db.query(WatchlistItem).filter(
        WatchlistItem.user_id == current_user.id,
        WatchlistItem.movie_id == request.movie_id
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Movie already in watchlist")

    item = WatchlistItem(
        user_id=current_user.id,
        movie_id=request.movie_id,
        title=request.title,
        poster_path=request.poster_path
    )
    db.add(item)
    db.commit()
    return {"status": "added", "movie_id": item.movie_id}


@app.delete("/api/watchlist/{movie_id}")
def delete_from_watchlist(movie_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if not remove_from_watchlist(db, current_user.id, movie_id):
        raise HTTPException(status_code=404, detail="Watchlist item not found")
    return {"status": "deleted", "movie_id": movie_id}


# --- SOCIAL API ---
@app.post("/api/social/follow/{user_id}")
def follow_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot follow yourself")

    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    existing = db.query(Follower).filter(Follower.follower_id == current_user.id, Follower.followed_id == user_id).first()
    if existing:
        return {"status": "already_following"}

    db.add(Follower(follower_id=current_user.id, followed_id=user_id))
    db.commit()
    return {"status": "followed", "user": target.name}


@app.post("/api/social/unfollow/{user_id}")
def unfollow_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    existing = db.query(Follower).filter(Follower.follower_id == current_user.id, Follower.followed_id == user_id).first()
    if not existing:
        return {"status": "not_following"}

    db.delete(existing)
    db.commit()
    return {"status": "unfollowed"}


@app.get("/api/social/following")
def get_following(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Get list of users I follow"""
    follows = db.query(Follower).filter(Follower.follower_id == current_user.id).all()
    return [
        {"id": f.followed.id, "name": f.followed.name, "picture": f.followed.picture}
        for f in follows if f.followed
    ]


@app.get("/api/social/feed", response_model=List[FeedItem])
def get_friend_feed(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    following_ids = [
        f.followed_id for f in db.query(Follower).filter(Follower.follower_id == current_user.id).all()
    ]
    if not following_ids:
        return []

    feed = db.query(FeedActivity).filter(
        FeedActivity.user_id.in_(following_ids)
    ).order_by(FeedActivity.created_at.desc(), FeedActivity.id.desc()).limit(30).all()

    return [
        FeedItem(
            id=a.id,
            user_id=a.user_id,
            user_name=a.user.name if a.user else None,
            user_picture=a.user.picture if a.user else None,
            movie_id=a.movie_id,
            title=a.title,
            poster_path=a.poster_path,
            rank=a.rank,
            created_at=a.created_at,
        )
        for a in feed
    ]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
