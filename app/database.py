# app/database.py
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()


def _database_url() -> str:
    """
    Resolve the connection URL from settings.

    When DATABASE_SSLMODE_REQUIRE is on (managed Postgres in the cloud),
    append sslmode=require unless the URL already carries an sslmode.
    """
    db_url = settings.DATABASE_URL
    if not settings.DATABASE_SSLMODE_REQUIRE or not db_url.startswith("postgresql"):
        return db_url

    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"
    return db_url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on
    # per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, **kwargs) -> Engine:
    """
    Create an engine for the given URL.

    - Postgres: pre-ping + pool sizing from settings.
    - SQLite (local dev / tests): foreign keys enabled on every connection
      so product deletes cascade to links and images like on Postgres.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = create_engine(url, echo=settings.DB_ECHO, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
    kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
    return create_engine(
        url,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,
        **kwargs,
    )


engine = build_engine(_database_url())


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def dispose_engine() -> None:
    """Release every pooled connection (application shutdown)."""
    engine.dispose()


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    One session per request; the `with` block closes it (and rolls back
    anything left uncommitted) on every exit path.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
