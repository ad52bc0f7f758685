"""
Database connection and session management
Postgres in deployment, SQLite for local runs and tests
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker

# ── Config ───────────────────────────────────────────────────────────────────

POSTGRES_USER = os.getenv("POSTGRES_USER", "quiz_user")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "")
POSTGRES_HOST = os.getenv("POSTGRES_HOST")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")
POSTGRES_DB = os.getenv("POSTGRES_DB", "quizforge")


def _default_database_url() -> str:
    if POSTGRES_HOST:
        return f"postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
    return "sqlite:///./quizforge.db"


DATABASE_URL = os.getenv("DATABASE_URL") or _default_database_url()


def make_engine(url: str):
    """
    Create an engine for the given URL.

    SQLite connections are shared across the threadpool FastAPI runs sync
    endpoints on, and wait on the file lock instead of failing immediately.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


# Create engine
engine = make_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative models
Base = declarative_base()


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
