"""Database engine and session management."""

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from portal.core.config import settings


def enable_sqlite_foreign_keys(target: Engine) -> Engine:
    """Turn on FK enforcement for every new SQLite connection of ``target``."""
    if target.dialect.name != "sqlite":
        return target

    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # noqa: ANN001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return target


connect_args: dict[str, bool] = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = enable_sqlite_foreign_keys(create_engine(settings.database_url, connect_args=connect_args))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and ensure proper cleanup."""
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit the work done inside the block, or roll it back and re-raise."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
