from typing import Any
from typing import Iterator

from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from devdeck.config import get_settings

_settings = get_settings()

# Create Base class
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    # SQLite ignores ON DELETE CASCADE unless the pragma is set per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


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
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    """Create a sessionmaker bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance

    Returns:
        A sessionmaker class
    """
    # `expire_on_commit=False` keeps attributes accessible after a commit so
    # rows can be serialised by FastAPI after the request session closed.
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


# Default engine and sessionmaker instances for app usage.  Tests overwrite
# ``devdeck.database.default_session_factory`` with their own factory.

default_engine = make_engine(_settings.resolved_database_url)
default_session_factory = make_sessionmaker(default_engine)


def get_session_factory() -> sessionmaker:
    """Return the session factory currently installed for the application."""
    return default_session_factory


def get_db(session_factory: Any = None) -> Iterator[Session]:
    """Dependency provider for database sessions.

    Args:
        session_factory: Optional custom session factory

    Yields:
        SQLAlchemy Session object
    """
    factory = session_factory or get_session_factory()
    db = factory()
    try:
        yield db
    finally:
        db.close()


def initialize_database(engine: Engine = None) -> None:
    """Create all tables on *engine* (defaults to :data:`default_engine`)."""
    # Import models so they are registered with Base before create_all.
    from devdeck.models import models  # noqa: F401

    target_engine = engine or default_engine
    Base.metadata.create_all(bind=target_engine)
