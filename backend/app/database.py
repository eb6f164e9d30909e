"""Database session and base configuration.

WHAT:
    Provides the SQLAlchemy engine and session factory, plus the FastAPI
    dependency and a context manager for workers and scripts.

WHY:
    - HTTP handlers get one session per request via `get_db()`
    - The sync worker runs outside FastAPI and uses `get_sync_session()`

USAGE:
    from app.database import SessionLocal, get_db

    @router.get("/items")
    def get_items(db: Session = Depends(get_db)):
        return db.query(Item).all()

REFERENCES:
    - https://docs.sqlalchemy.org/en/20/orm/session_basics.html
    - app/routers/ (consumers of these sessions)
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

def _normalize_database_url(url: str) -> str:
    """Normalize Heroku-style `postgres://` URLs.

    SQLAlchemy 1.4+ only accepts the `postgresql://` scheme.
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


DATABASE_URL = _normalize_database_url(get_settings().DATABASE_URL)


# =============================================================================
# ENGINE
# =============================================================================

# Connection pool configuration for production:
# - pool_recycle: Recreate connections after 1 hour to prevent stale connections
# - pool_pre_ping: Check connection health before use
#
# NOTE: SQLite engines (dev and tests) do not support pool_size/max_overflow.
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_pre_ping=True,
    )

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


# Base is defined in app.models to ensure a single registry across the app
from .models import Base  # noqa: E402,F401


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

def get_db() -> Generator[Session, None, None]:
    """Yield a database session for FastAPI dependency injection.

    Yields:
        SQLAlchemy Session instance, closed when the request finishes
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# CONTEXT MANAGERS (for non-FastAPI usage)
# =============================================================================

@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """Context manager for sessions outside FastAPI.

    Example:
        with get_sync_session() as db:
            subscriptions = db.query(Subscription).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
