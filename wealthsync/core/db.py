"""Engine and session factory."""

from __future__ import annotations

from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from wealthsync.core.config import get_settings
from wealthsync.core.logging import get_logger

log = get_logger("db")


def build_engine(database_url: str, **kwargs: Any) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, connect_args={"check_same_thread": False}, **kwargs)
        _enable_sqlite_savepoints(engine)
        log.debug(f"Using SQLite database at {database_url}")
        return engine
    engine = create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_recycle=1800,  # avoid stale PG connections
        pool_pre_ping=True,
        **kwargs,
    )
    log.debug(f"Using database {engine.url.render_as_string(hide_password=True)}")
    return engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own; SAVEPOINT needs SQLAlchemy to own it
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = build_engine(get_settings().DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
