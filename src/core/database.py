"""Database connection and session management.

This module handles the database connection using SQLAlchemy. SQLite is the
default; any SQLAlchemy URL (e.g. PostgreSQL) can be set via DATABASE_URL.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import DATA_DIR, DATABASE_URL
from models.base import Base
# Import models to ensure they are registered with Base.metadata
import models  # noqa: F401


def build_engine(url: str = DATABASE_URL) -> Engine:
    """Create an engine, applying SQLite-specific connection arguments."""
    connect_args = {}
    if url.startswith("sqlite"):
        # Ensure data directory exists
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    """Create tables if they do not exist."""
    Base.metadata.create_all(bind=bind)


def get_db():
    """Dependency for getting a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
