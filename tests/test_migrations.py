"""Tests for catalog schema migrations."""

from sqlalchemy import inspect

from longbox.database import make_engine
from longbox.migrations import backup_database, get_status, migrate_to_head, stamp_if_needed


def test_create_all_catalog_is_stamped_once(db_engine):
    assert get_status().current is None

    assert stamp_if_needed() is True
    assert get_status().up_to_date

    assert stamp_if_needed() is False


def test_fresh_database_is_built_by_migrations(tmp_path, monkeypatch):
    engine = make_engine(tmp_path / "fresh.db")
    monkeypatch.setattr("longbox.database.engine", engine, raising=True)
    try:
        # Nothing to stamp in an empty file
        assert stamp_if_needed() is False

        status = migrate_to_head(backup=False)

        assert status.up_to_date
        tables = set(inspect(engine).get_table_names())
        assert {"comics", "scan_dirs", "user_comic_status", "alembic_version"} <= tables
    finally:
        engine.dispose()


def test_backup_database(db_engine, tmp_path):
    backup = backup_database()
    assert backup == tmp_path / "library.db.bak"
    assert backup.exists()
