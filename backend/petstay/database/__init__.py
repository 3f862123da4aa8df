"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from petstay.core.config import settings

logger = logging.getLogger(__name__)


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": settings.database_echo, "future": True}
    if db_url.startswith("sqlite"):
        # Sessions are handed to worker threads by the request layer.
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update({"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True})
    return kwargs


def build_engine(db_url: str | None = None) -> Engine:
    url = db_url or settings.database_url
    return create_engine(url, **_build_engine_kwargs(url))


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_all(bind: Engine | None = None) -> None:
    """Create every table known to the metadata (tests and local bootstrap)."""
    import petstay.models  # noqa: F401  (registers mappers)

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database schema ensured")
