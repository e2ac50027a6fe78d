"""SQLAlchemy engine and session factory shared by the services."""
import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings
from .errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, timeout: float) -> Engine:
    """Create an engine whose connections give up after ``timeout`` seconds."""

    if database_url.startswith("sqlite"):
        # sqlite's ``timeout`` is how long a writer waits on a locked database
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=timeout,
        connect_args={"connect_timeout": int(timeout)},
    )


settings = get_settings()
engine = build_engine(settings.database_url, settings.store_timeout_seconds)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_session(session_factory: sessionmaker, action: str) -> Iterator[Session]:
    """Open a session, reporting driver failures as ``StoreUnavailableError``."""

    try:
        with session_factory() as db:
            yield db
    except SQLAlchemyError as exc:
        logger.error("Store failed during %s: %s", action, exc)
        raise StoreUnavailableError(f"Store unavailable ({action})") from exc
