"""
Database configuration and session management.
Uses SQLAlchemy; PostgreSQL in production, SQLite for local development.

In production the database is shared with the dashboard backend, which owns
the `kitnets` table and hands out `postgres://` URLs.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
from kitbot.config import config


def normalize_database_url(url: str) -> str:
    """Rewrite the legacy postgres:// scheme, which SQLAlchemy 2 rejects."""
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


DATABASE_URL = normalize_database_url(config.DATABASE_URL)

# Create database engine
# For development: SQLite (file-based)
# For production: PostgreSQL shared with the dashboard
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False}  # SQLite specific
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,  # Shared server: the dashboard backend keeps its own pool
        max_overflow=10,  # Max connections above pool_size
        echo=config.DEBUG  # Log SQL queries in debug mode
    )

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database sessions.

    Usage in FastAPI:
        @router.post("/agent/turn")
        def agent_turn(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Create every table that does not exist yet.
    Safe to call on every startup; existing tables are left untouched.
    """
    # Register the models on Base.metadata before creating tables.
    from kitbot import db_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
