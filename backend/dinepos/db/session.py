"""Database session management."""

from collections.abc import Generator
from pathlib import Path
from typing import Annotated

from fastapi import Depends
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from dinepos.core.config import settings

# Create engine - handle SQLite specially for check_same_thread
connect_args = {}
pool_config = {}

if settings.database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}
    pool_config = {
        "pool_pre_ping": True,
    }
    db_path = settings.database_url.split("///", 1)[-1]
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
else:
    # PostgreSQL connection pooling; every terminal request holds one briefly
    pool_config = {
        "pool_size": 20,
        "max_overflow": 40,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }

def enable_sqlite_savepoints(target: Engine) -> None:
    """Have SQLAlchemy emit BEGIN itself on a pysqlite engine.

    pysqlite defers BEGIN until the first DML statement, so a SAVEPOINT
    issued first becomes the outermost transaction and releasing it commits.
    The KOT counter and the conditional order create both rely on savepoints.
    """
    @event.listens_for(target, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=False,
    **pool_config,
)

# Enable foreign key enforcement for SQLite
if settings.database_url.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Type alias for dependency injection
DbSession = Annotated[Session, Depends(get_db)]
