"""Database configuration and session management."""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from src.config import get_settings
from src.exceptions import ConflictError, TransientStorageError

settings = get_settings()

_engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
if settings.database_url.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    _engine_kwargs.update(pool_size=5, max_overflow=10)

engine = create_engine(settings.database_url, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Dependency for handlers that open short-lived sessions of their own."""
    return SessionLocal


def init_db() -> None:
    """Initialize the database by creating all tables."""
    # Import all models here so they are registered with Base.metadata
    from src import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def commit_or_raise(db: Session) -> None:
    """Commit, translating storage failures into application errors.

    Stale version counters and unique-constraint races become ConflictError, lost
    connections become TransientStorageError. The session is rolled back either way.
    """
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as e:
        db.rollback()
        raise ConflictError("The list was changed by someone else, reload and retry") from e
    except OperationalError as e:
        db.rollback()
        raise TransientStorageError("Storage temporarily unavailable") from e
