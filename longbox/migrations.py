"""Schema migrations for the Longbox catalog.

Wraps Alembic so the CLI never drives it directly. Catalogs created by
``init_db()`` (SQLModel ``create_all``) carry no ``alembic_version`` table;
they are stamped at head the first time they are seen, after which normal
upgrades apply.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import NamedTuple, Optional

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect

from .config import PROJECT_ROOT
from .database import database_file, get_engine
from .logging_config import get_logger

logger = get_logger(__name__)

VERSION_TABLE = "alembic_version"


class MigrationStatus(NamedTuple):
    current: Optional[str]
    head: str

    @property
    def up_to_date(self) -> bool:
        return self.current == self.head


def _alembic_cfg() -> AlembicConfig:
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    return cfg


def backup_database() -> Optional[Path]:
    """Copy the catalog to ``<name>.db.bak`` (replacing an older backup)."""
    db_file = database_file()
    if db_file is None or not db_file.exists():
        return None
    backup = db_file.with_suffix(".db.bak")
    shutil.copy2(db_file, backup)
    logger.info(f"Catalog backed up to {backup.name}")
    return backup


def get_status() -> MigrationStatus:
    head = ScriptDirectory.from_config(_alembic_cfg()).get_current_head() or "unknown"
    with get_engine().connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()
    return MigrationStatus(current, head)


def stamp_if_needed() -> bool:
    """Stamp an unversioned, non-empty catalog at head. Returns True if stamped."""
    tables = set(inspect(get_engine()).get_table_names())
    if not tables or VERSION_TABLE in tables:
        return False
    alembic_command.stamp(_alembic_cfg(), "head")
    logger.info("Unversioned catalog stamped at head")
    return True


def run_migrations(backup: bool = True) -> MigrationStatus:
    if backup:
        backup_database()
    alembic_command.upgrade(_alembic_cfg(), "head")
    return get_status()


def migrate_to_head(backup: bool = True) -> MigrationStatus:
    """Stamp if needed, then upgrade when the catalog is behind head."""
    stamp_if_needed()
    status = get_status()
    if status.up_to_date:
        logger.info(f"Catalog schema at {status.head} (up to date).")
        return status

    logger.info(f"Migrating catalog {status.current} -> {status.head} ...")
    status = run_migrations(backup=backup)
    logger.info("Migration complete.")
    return status
