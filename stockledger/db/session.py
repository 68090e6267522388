"""SQLAlchemy engine, session factory and declarative base."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ..core.config import settings


def _connect_args(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    # Concurrent movements queue on SQLite's write lock instead of failing fast.
    return {"check_same_thread": False, "timeout": settings.DB_BUSY_TIMEOUT_SEC}


engine = create_engine(
    settings.DB_URL,
    connect_args=_connect_args(settings.DB_URL),
    pool_pre_ping=not settings.DB_URL.startswith("sqlite"),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
