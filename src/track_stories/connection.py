"""Engine, session and transaction helpers for the story tracking database."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from track_stories.tables import Base

logger = logging.getLogger(__name__)


class TransientStoreFailure(Exception):
    """Persistence I/O failed; the operation may succeed if retried."""


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite is shared across threads."""
    kwargs: dict[str, Any] = {"echo": echo}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["poolclass"] = StaticPool
    elif url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    """Create tables that do not exist yet."""
    Base.metadata.create_all(engine)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Session with automatic commit/rollback.

    SQLAlchemy errors are re-raised as TransientStoreFailure.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise TransientStoreFailure(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def insert_ignore(
    session: Session,
    model: type[Base],
    values: dict[str, Any],
    index_elements: list[str],
) -> int:
    """INSERT ... ON CONFLICT DO NOTHING. Returns the number of rows inserted."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"insert_ignore not supported for dialect {dialect}")

    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=index_elements)
    result = session.execute(stmt)
    return result.rowcount or 0
