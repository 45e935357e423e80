"""Data Access Layer for Longbox.

Encapsulates catalog database operations using SQLModel/SQLAlchemy.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlmodel import Session, select

from .models import Comic, ScanDir, UserComicStatus
from .path_utils import to_catalog_path
from .utils import as_utc


class Repository:
    """Data access layer over the catalog tables.

    Paths are stored as absolute strings (see to_catalog_path). Callers
    control when to commit, and roll back after a failed flush.
    """

    def __init__(self, session: Session):
        self.session = session

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # --- Comics ---

    def get_comic(self, comic_id: str) -> Optional[Comic]:
        return self.session.get(Comic, comic_id)

    def get_all_comics(self) -> List[Comic]:
        return list(self.session.exec(select(Comic)).all())

    def get_catalog_paths(self) -> Dict[str, Optional[str]]:
        """Map every cataloged path to its thumbnail filename (or None)."""
        rows = self.session.exec(select(Comic.path, Comic.thumbnail_path)).all()
        return {path: thumb for path, thumb in rows}

    def upsert_comic(
        self,
        *,
        comic_id: str,
        path: Path,
        name: str,
        publisher: str,
        series: str,
        thumbnail_path: Optional[str],
        comic_metadata: Dict[str, Any],
        total_pages: int,
        updated_at: datetime,
        converted_at: Optional[datetime],
    ) -> Comic:
        """Insert or replace the row for comic_id."""
        comic = self.session.get(Comic, comic_id)
        if comic is None:
            comic = Comic(
                id=comic_id,
                path=to_catalog_path(path),
                name=name,
                updated_at=as_utc(updated_at),
            )

        comic.path = to_catalog_path(path)
        comic.name = name
        comic.publisher = publisher
        comic.series = series
        comic.thumbnail_path = thumbnail_path
        comic.comic_metadata = dict(comic_metadata)
        comic.total_pages = total_pages
        comic.updated_at = as_utc(updated_at)
        comic.converted_at = as_utc(converted_at)

        self.session.add(comic)
        self.session.flush()
        return comic

    def delete_comic_by_path(self, path: str) -> Optional[str]:
        """Delete the comic at path. Returns its thumbnail filename, if any."""
        comic = self.session.exec(select(Comic).where(Comic.path == str(path))).first()
        if comic is None:
            return None
        thumb = comic.thumbnail_path
        self.session.delete(comic)
        self.session.flush()
        return thumb

    # --- Scan directory cache ---

    def get_scan_dir_mtime(self, directory: Path) -> Optional[float]:
        row = self.session.get(ScanDir, to_catalog_path(directory))
        return row.mtime_ms if row else None

    def set_scan_dir_mtime(self, directory: Path, mtime_ms: float) -> None:
        row = self.session.get(ScanDir, to_catalog_path(directory))
        if row is None:
            row = ScanDir(dir=to_catalog_path(directory), mtime_ms=mtime_ms)
        else:
            row.mtime_ms = mtime_ms
        self.session.add(row)
        self.session.flush()

    def clear_scan_dirs(self) -> int:
        rows = self.session.exec(select(ScanDir)).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)

    def prune_scan_dirs(self, keep: Iterable[str]) -> int:
        """Delete cache rows for directories not in keep. Returns deleted count."""
        keep_set = set(keep)
        stale = [row for row in self.session.exec(select(ScanDir)).all() if row.dir not in keep_set]
        for row in stale:
            self.session.delete(row)
        self.session.flush()
        return len(stale)

    # --- Progress overlay (read-only) ---

    def get_user_progress(self, user_id: str) -> Dict[str, Dict[str, int]]:
        """All progress rows for one user in a single query, keyed by comic id."""
        rows = self.session.exec(
            select(UserComicStatus).where(UserComicStatus.user_id == user_id)
        ).all()
        return {
            row.comic_id: {
                "lastReadPage": row.last_read_page,
                "totalPages": row.total_pages,
            }
            for row in rows
        }
