from movietier.models import RankedMovie, User
from movietier.schemas import Candidate


def make_user(db, name):
    user = User(email=f"{name.lower()}@example.com", name=name, picture=f"https://example.com/{name}.png")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def movie(movie_id, title=None, poster_path=None):
    return Candidate(movie_id=movie_id, title=title or f"Movie {movie_id}", poster_path=poster_path)


def seed_ranked(db, owner, titles):
    """Insert movies directly with ranks 1..N in the given order; ids are 1..N."""
    for rank, title in enumerate(titles, start=1):
        db.add(RankedMovie(user_id=owner, movie_id=rank, title=title, rank=rank))
    db.commit()


def ranks_of(store, owner):
    return [entry.rank for entry in store.list(owner)]


def titles_of(store, owner):
    return [entry.title for entry in store.list(owner)]
