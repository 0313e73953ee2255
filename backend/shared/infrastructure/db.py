"""
SQLAlchemy engine and sessions.

REST handlers get a session per request through get_db. The chat gateway
does not: its store opens short sessions from SessionLocal inside worker
threads, one per insert or lookup.
"""

import os
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from shared.config.settings import DATABASE_URL

_IN_MEMORY_SQLITE = ("sqlite://", "sqlite:///:memory:")


def build_engine(url: str) -> Engine:
    """
    SQLite: usable from the gateway's worker threads, and a single shared
    connection when in memory (otherwise every connection gets its own
    empty database).

    Anything else: a pre-pinged pool sized to the machine, at most 20.
    """
    if url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if url in _IN_MEMORY_SQLITE:
            options["poolclass"] = StaticPool
        return create_engine(url, **options)

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=min((os.cpu_count() or 4) * 2 + 1, 20),
        max_overflow=15,
        pool_timeout=30,
        pool_recycle=1800,
        connect_args={"connect_timeout": 10},
    )


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db() -> Generator[Session, None, None]:
    """Dependency: a session that is closed when the request ends."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """Commit, or roll back and re-raise."""
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
