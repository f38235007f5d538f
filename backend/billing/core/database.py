from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from billing.core.config import settings
from billing.core.errors import StoreError

engine = create_engine(
    settings.APP_DATABASE_DSN,
    connect_args=({"check_same_thread": False} if "sqlite" in settings.APP_DATABASE_DSN else {}),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def new_session() -> Session:
    """Open a session from the current session factory.

    Looks ``SessionLocal`` up at call time so a factory swapped in after import
    (tests, worker start-up) is honoured.
    """
    return SessionLocal()


def commit_or_raise(db: Session, action: str) -> None:
    """Commit, rolling back and raising ``StoreError`` on failure."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Failed to {action}: {e}") from e


def init_db() -> None:
    """Initialize database tables."""
    import billing.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
