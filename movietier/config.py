import os
import logging

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# --- CONFIGURATION ---
ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

SECRET_KEY = os.environ.get("SECRET_KEY")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = int(os.environ.get("ACCESS_TOKEN_EXPIRE_DAYS", "7"))
GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")

TMDB_API_KEY = os.environ.get("TMDB_API_KEY")
TMDB_BASE_URL = os.environ.get("TMDB_BASE_URL", "https://api.themoviedb.org/3")

LOG_FILE = os.environ.get("LOG_FILE")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Render/Production provides DATABASE_URL. Local uses SQLite.
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{os.path.join(BASE_DIR, 'movietier.db')}")

# Postgres URLs must start with postgresql:// not postgres://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

DEV_SECRET_KEY = "dev-secret-key-change-in-production"


def get_secret_key():
    return SECRET_KEY or DEV_SECRET_KEY


def validate_config():
    """Fail fast in production when a secret is missing, warn otherwise."""
    missing = [
        name for name, value in (
            ("SECRET_KEY", SECRET_KEY),
            ("GOOGLE_CLIENT_ID", GOOGLE_CLIENT_ID),
            ("TMDB_API_KEY", TMDB_API_KEY),
        )
        if not value
    ]
    if not missing:
        return

    if ENVIRONMENT == "production":
        raise RuntimeError(f"Configuration validation failed: {', '.join(missing)} not set")

    for name in missing:
        logging.warning(f"{name} not set. Using development fallback (NOT SECURE for production)")
