"""SQLModel database models for Longbox."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel


class ComicBase(SQLModel):
    path: str = Field(unique=True, index=True)  # absolute
    name: str
    publisher: str = "Unknown Publisher"
    series: str = "Unknown Series"
    thumbnail_path: Optional[str] = None  # filename under thumbnails/
    total_pages: int = 0
    updated_at: datetime  # source file mtime at last scan
    converted_at: Optional[datetime] = None


class Comic(ComicBase, table=True):
    __tablename__ = "comics"
    id: str = Field(primary_key=True)  # create_id(path)
    # "metadata" is reserved on SQLAlchemy declarative classes
    comic_metadata: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False, default=dict),
    )


class ScanDir(SQLModel, table=True):
    __tablename__ = "scan_dirs"
    dir: str = Field(primary_key=True)
    mtime_ms: float


class UserComicStatus(SQLModel, table=True):
    """Per-user reading progress.

    Written by the sync layer; the library tree only reads it.
    """

    __tablename__ = "user_comic_status"
    user_id: str = Field(primary_key=True)
    comic_id: str = Field(primary_key=True, index=True)
    last_read_page: int = 0
    total_pages: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
