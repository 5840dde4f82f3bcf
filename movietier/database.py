from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from movietier import config

# --- DATABASE SETUP ---
connect_args = {}
engine_kwargs = {"pool_pre_ping": True}
if "sqlite" in config.DATABASE_URL:
    connect_args = {"check_same_thread": False}
    if config.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        engine_kwargs = {"poolclass": StaticPool}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # Import models so their tables are registered on Base.metadata
    from movietier import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
