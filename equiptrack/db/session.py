"""SQLAlchemy engine, session factory and unit-of-work helpers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.errors import ConflictError

# SQLite connections are shared across FastAPI worker threads.
CONNECT_ARGS = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, connect_args=CONNECT_ARGS)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """FastAPI dependency that yields a session and guarantees cleanup."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Run a block as one transaction.

    Everything flushed inside the block commits together or not at all. A
    version mismatch on any equipment row surfaces as ``ConflictError`` so the
    caller can re-fetch and retry.
    """

    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError(
            "Equipment was modified by another request; reload and try again",
            details={"reason": str(exc)},
        ) from exc
    except Exception:
        db.rollback()
        raise
