"""
Database connection management for Kanakey.

Engines are cached per database file; sessions are cheap and created per
unit of work, so worker threads never share one.
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from kanakey.db.models import Base
from kanakey.settings import BUSY_TIMEOUT, DB_PATH

_engines: Dict[str, Engine] = {}
_lock = threading.Lock()


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    # Readers keep going while a single writer records selections
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA synchronous = NORMAL")
    cursor.close()


def get_engine(db_path: Optional[Union[str, Path]] = None) -> Engine:
    """
    Get (or create) the engine for a database file.

    Args:
        db_path: Path to the SQLite database file. Defaults to settings.DB_PATH.

    Returns:
        SQLAlchemy engine.
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    key = str(path.resolve())

    with _lock:
        engine = _engines.get(key)
        if engine is None:
            path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(
                f"sqlite:///{path}",
                connect_args={"check_same_thread": False, "timeout": BUSY_TIMEOUT},
            )
            event.listen(engine, "connect", _set_sqlite_pragmas)
            _engines[key] = engine
        return engine


def init_schema(engine: Engine) -> None:
    """Create the entries and learn tables if they are missing."""
    Base.metadata.create_all(engine)


def get_session_factory(db_path: Optional[Union[str, Path]] = None) -> sessionmaker:
    return sessionmaker(bind=get_engine(db_path), expire_on_commit=False)


def get_session(db_path: Optional[Union[str, Path]] = None) -> Session:
    """Open a new session on the given database."""
    return get_session_factory(db_path)()


@contextmanager
def session_scope(db_path: Optional[Union[str, Path]] = None) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back on any exception and re-raises it.
    """
    session = get_session(db_path)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose(db_path: Optional[Union[str, Path]] = None) -> None:
    """Dispose of cached engines (one path, or all of them)."""
    with _lock:
        if db_path is None:
            keys = list(_engines)
        else:
            keys = [str(Path(db_path).resolve())]
        for key in keys:
            engine = _engines.pop(key, None)
            if engine is not None:
                engine.dispose()
