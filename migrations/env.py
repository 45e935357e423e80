"""Alembic environment for the Longbox catalog.

Runs against the same engine the application uses, so a test or a CLI
run that repoints ``longbox.database.engine`` migrates that database.
"""

from __future__ import annotations

from alembic import context
from sqlmodel import SQLModel

from longbox import models as _models  # noqa: F401  (registers the tables)
from longbox.database import get_engine

target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=str(get_engine().url),
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with get_engine().connect() as conn:
        # Batch mode: SQLite rebuilds tables instead of ALTERing constraints
        context.configure(connection=conn, target_metadata=target_metadata, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
