import logging
from contextlib import contextmanager
from typing import Any
from typing import Iterator

from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from workspace_manager.config import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()

# Create Base class
Base = declarative_base()


def make_engine(db_url: str, **kwargs) -> Engine:
    """Create a SQLAlchemy engine with the given URL and options.

    Args:
        db_url: Database connection URL
        **kwargs: Additional arguments for create_engine

    Returns:
        A SQLAlchemy Engine instance
    """
    connect_args = kwargs.pop("connect_args", {})
    if "sqlite" in db_url:
        if "check_same_thread" not in connect_args:
            connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30

    engine = create_engine(db_url, connect_args=connect_args, **kwargs)

    if "sqlite" in db_url:
        # SQLite ships with foreign keys disabled; cascades on membership and
        # assignee rows rely on them.
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):  # noqa: ANN001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    """Create a sessionmaker bound to the given engine.

    ``expire_on_commit=False`` keeps attributes accessible after a commit so
    rows returned from request handlers can still be serialised once the
    request-scoped session is closed.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


# Default engine and sessionmaker instances for app usage.  Tests overwrite
# these via ``workspace_manager.database.default_engine = …``.

_resolved_db_url = _settings.database_url or ("sqlite:///:memory:" if _settings.testing else "sqlite:///./app.db")

default_engine = make_engine(_resolved_db_url)
default_session_factory = make_sessionmaker(default_engine)


def get_session_factory() -> sessionmaker:
    """Return the default session factory for the application."""

    return default_session_factory


def get_db() -> Iterator[Session]:
    """Dependency provider for request-scoped database sessions."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session(session_factory: Any = None):
    """Database session context manager for services and scripts.

    Commits on success, rolls back on error (re-raising the original
    exception) and always closes the session.

    Usage:
        with db_session() as db:
            user = crud.create_user(db, email="a@example.com")
    """
    factory = session_factory or get_session_factory()
    session = factory()

    try:
        yield session
        session.commit()
        logger.debug("Database session committed successfully")

    except Exception as e:
        session.rollback()
        logger.error(f"Database session rolled back due to error: {e}")
        raise

    finally:
        session.close()


def initialize_database(engine: Engine = None) -> None:
    """Initialize database tables using the given engine.

    If no engine is provided, uses the default engine.
    """
    # Import all models so they are registered with Base
    from workspace_manager.models import models  # noqa: F401

    target_engine = engine or default_engine
    Base.metadata.create_all(bind=target_engine)
