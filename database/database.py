"""
Database connection and session management
SQLite by default (DATABASE_URL overrides, e.g. a Postgres URL)
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Database URL from environment
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/questions.db")


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sessions are opened from FastAPI's worker threads
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


# Create engine
engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative models
Base = declarative_base()


def sqlite_path(url: str = DATABASE_URL):
    """Filesystem path of a file-backed SQLite URL, else None."""
    prefix = "sqlite:///"
    if url.startswith(prefix) and url != "sqlite://" and ":memory:" not in url:
        return url[len(prefix):]
    return None


def get_db():
    """
    Database session dependency for FastAPI
    Yields a database session and ensures it's closed after use
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
