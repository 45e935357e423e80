"""Catalog database: SQLite through SQLModel.

One process-wide engine. Scan cycles write through it from worker threads
while the tree builder and request handlers read, so every connection runs
in WAL mode with a busy timeout.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from .config import DATA_DIR

DB_PATH = DATA_DIR / "library.db"
BUSY_TIMEOUT_MS = 5000


def make_engine(db_path: Path) -> Engine:
    """SQLite engine for db_path with the catalog's per-connection pragmas."""
    new_engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})

    @event.listens_for(new_engine, "connect")
    def _set_pragmas(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        cursor.close()

    return new_engine


engine = make_engine(DB_PATH)


def get_engine() -> Engine:
    return engine


def configure_database(db_path: Path) -> Engine:
    """Point the module engine at db_path (the CLI passes the config's data dir)."""
    global engine
    if database_file() != db_path:
        engine.dispose()
        engine = make_engine(db_path)
    return engine


def database_file() -> Optional[Path]:
    database = get_engine().url.database
    return Path(database) if database else None


def init_db() -> None:
    """Create any missing catalog tables."""
    from . import models  # noqa: F401  (registers the tables)

    db_file = database_file()
    if db_file is not None:
        db_file.parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(get_engine())


def reset_database() -> None:
    """Delete the catalog file (and its WAL sidecars) and recreate the schema."""
    get_engine().dispose()
    db_file = database_file()
    if db_file is not None:
        for suffix in ("", "-wal", "-shm"):
            Path(f"{db_file}{suffix}").unlink(missing_ok=True)
    init_db()
