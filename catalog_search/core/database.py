"""
Database connection and session management.
"""

import logging
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from catalog_search.core.config import get_settings
from catalog_search.core.models import Base

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Singleton engine & session factory, created once and reused everywhere
# ---------------------------------------------------------------------------
_engine = None
_SessionLocal = None


def get_engine():
    """
    Get the shared database engine (singleton).

    Uses connection pooling for efficiency. Search fans out one session per
    entity kind, so the pool must allow at least four concurrent checkouts.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        kwargs = {"pool_pre_ping": True, "echo": False}
        if settings.database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_size"] = 10
            kwargs["max_overflow"] = 10
        _engine = create_engine(settings.database_url, **kwargs)
    return _engine


def create_tables(engine=None):
    """
    Create all tables if they don't exist.

    Idempotent - safe to call multiple times.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Creating tables if they don't exist...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables ready")


def get_session_factory():
    """Get the shared session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=get_engine()
        )
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get a database session.

    Usage:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def reset_database() -> None:
    """Dispose the engine and forget the singletons (tests, reconfiguration)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
