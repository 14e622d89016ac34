import logging
import sqlite3
import threading
from pathlib import Path
import uuid

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config.loader import get_database_url, get_pool_settings, get_sqlite_settings


def _ensure_sqlite_directory(database_url: str) -> None:
    if not database_url.startswith("sqlite"):
        return
    db_url = make_url(database_url)
    if not db_url.database or db_url.database == ":memory:":
        return
    db_path = Path(db_url.database)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)


DATABASE_URL = get_database_url()

logger = logging.getLogger("database")

_ensure_sqlite_directory(DATABASE_URL)

connect_args = {}
engine_kwargs = {"pool_pre_ping": True}
_sqlite_settings = get_sqlite_settings()
if DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False
    connect_args["timeout"] = max(1, _sqlite_settings["busy_timeout_ms"] / 1000)
else:
    _pool_settings = get_pool_settings()
    engine_kwargs.update(
        pool_size=_pool_settings["pool_size"],
        max_overflow=_pool_settings["max_overflow"],
        pool_timeout=_pool_settings["pool_timeout"],
        pool_recycle=_pool_settings["pool_recycle"],
        pool_use_lifo=True,
    )

engine = create_engine(DATABASE_URL, connect_args=connect_args, **engine_kwargs)

_SQLITE_WRITE_LOCK = threading.RLock()


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute(f"PRAGMA journal_mode={_sqlite_settings['journal_mode']}")
    cursor.execute(f"PRAGMA synchronous={_sqlite_settings['synchronous']}")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(f"PRAGMA busy_timeout={_sqlite_settings['busy_timeout_ms']}")
    cursor.close()


def _is_sqlite_locked_error(exc: OperationalError) -> bool:
    message = str(exc).lower()
    return "database is locked" in message or "database table is locked" in message


class QueuedSession(Session):
    """
    Session that serialises SQLite commits within the process.

    A commit that still hits "database is locked" after the busy timeout is
    rolled back and re-raised; the discarded unit of work is never committed
    as if it had succeeded.
    """

    def commit(self) -> None:
        with _SQLITE_WRITE_LOCK:
            try:
                return super().commit()
            except OperationalError as exc:
                if _is_sqlite_locked_error(exc):
                    logger.warning(f"SQLite commit rejected, database locked: {exc}")
                super().rollback()
                raise

    def flush(self, objects=None) -> None:
        with _SQLITE_WRITE_LOCK:
            return super().flush(objects)


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=QueuedSession if DATABASE_URL.startswith("sqlite") else Session,
)

Base = declarative_base()


def get_db():
    req_id = uuid.uuid4()
    logger.debug(f"[DB_SESSION_START][{req_id}] Creating database session.")
    db = SessionLocal()
    try:
        logger.debug(f"[DB_SESSION_YIELD][{req_id}] Yielding database session.")
        yield db
    finally:
        logger.debug(f"[DB_SESSION_END][{req_id}] Closing database session.")
        db.close()
