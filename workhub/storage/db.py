"""Database engine, request-scoped sessions and the connectivity probe."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Iterator, Optional

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from workhub.core.config import get_settings
from workhub.core.logger import get_logger


logger = get_logger("workhub.storage")


class Base(DeclarativeBase):
    pass


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # TestClient and uvicorn workers share the connection across threads.
        options["connect_args"] = {"check_same_thread": False}
    return options


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    database_url = get_settings().database_url
    return create_engine(database_url, **_engine_options(database_url))


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


def get_session() -> Iterator[Session]:
    """FastAPI dependency yielding one session per request."""

    with get_session_factory()() as session:
        yield session


def ping_database() -> tuple[bool, Optional[str]]:
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("database_ping_failed", error=str(exc))
        return False, str(exc)
    return True, None


def load_models() -> None:
    """Register the ORM models on ``Base.metadata``."""

    import workhub.storage.models  # noqa: F401
