import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from movietier.auth import get_current_user
from movietier.database import Base, get_db, init_db
from movietier.main import app, get_owner_locks, get_session_store
from movietier.ranking.controller import InsertionController
from movietier.ranking.sessions import InMemorySessionStore, OwnerLocks
from movietier.ranking.store import RankedListStore

from tests.helpers import make_user


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    return make_user(db, "Alice")


@pytest.fixture
def other_user(db):
    return make_user(db, "Bob")


@pytest.fixture
def sessions():
    return InMemorySessionStore()


@pytest.fixture
def locks():
    return OwnerLocks()


@pytest.fixture
def store(db):
    return RankedListStore(db)


@pytest.fixture
def controller(store, sessions, locks):
    return InsertionController(store, sessions, locks)


@pytest.fixture
def as_user(db, sessions, locks):
    """Routes run as whichever user was last passed to the returned setter."""
    current = {}

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current["user"]
    app.dependency_overrides[get_session_store] = lambda: sessions
    app.dependency_overrides[get_owner_locks] = lambda: locks

    def set_user(user):
        current["user"] = user

    yield set_user
    app.dependency_overrides.clear()


@pytest.fixture
def client(as_user, user):
    as_user(user)
    return TestClient(app)
