"""Catalog schema: comics, scan_dirs, user_comic_status

Revision ID: 0001
Revises: None
Create Date: 2026-10-18 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _table_exists(name: str) -> bool:
    conn = op.get_bind()
    result = conn.execute(
        sa.text("SELECT 1 FROM sqlite_master WHERE type='table' AND name=:n"),
        {"n": name},
    )
    return result.fetchone() is not None


def upgrade() -> None:
    # Guarded so databases created by init_db() (create_all) can be upgraded too

    if not _table_exists("comics"):
        op.create_table(
            "comics",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("path", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("publisher", sa.String(), nullable=False),
            sa.Column("series", sa.String(), nullable=False),
            sa.Column("thumbnail_path", sa.String(), nullable=True),
            sa.Column("total_pages", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("converted_at", sa.DateTime(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=False),
        )
        op.create_index("ix_comics_path", "comics", ["path"], unique=True)

    if not _table_exists("scan_dirs"):
        op.create_table(
            "scan_dirs",
            sa.Column("dir", sa.String(), primary_key=True),
            sa.Column("mtime_ms", sa.Float(), nullable=False),
        )

    if not _table_exists("user_comic_status"):
        op.create_table(
            "user_comic_status",
            sa.Column("user_id", sa.String(), primary_key=True),
            sa.Column("comic_id", sa.String(), primary_key=True),
            sa.Column("last_read_page", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_pages", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_user_comic_status_comic_id", "user_comic_status", ["comic_id"])


def downgrade() -> None:
    op.drop_table("user_comic_status")
    op.drop_table("scan_dirs")
    op.drop_table("comics")
