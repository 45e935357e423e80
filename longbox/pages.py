"""Comic lookup and page extraction for readers.

Thin wrappers over the archive: page order is the same natural sort the
scanner uses for thumbnails and page counts.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from .archive import ArchiveError, open_archive
from .database import get_engine
from .logging_config import get_logger
from .path_utils import from_catalog_path
from .repository import Repository

logger = get_logger(__name__)

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def content_type_for(name: str) -> str:
    return _CONTENT_TYPES.get(Path(name).suffix.lower(), "image/jpeg")


def _comic_path(comic_id: str) -> Optional[Path]:
    with Session(get_engine()) as session:
        comic = Repository(session).get_comic(comic_id)
    if comic is None:
        return None
    path = from_catalog_path(comic.path)
    return path if path.exists() else None


def get_comic_details(comic_id: str) -> Optional[Dict[str, Any]]:
    """Full catalog record for one comic (including the whole ComicInfo record)."""
    with Session(get_engine()) as session:
        comic = Repository(session).get_comic(comic_id)
    if comic is None:
        return None
    return {
        "id": comic.id,
        "name": comic.name,
        "path": comic.path,
        "publisher": comic.publisher,
        "series": comic.series,
        "thumbnailPath": comic.thumbnail_path,
        "totalPages": comic.total_pages,
        "metadata": dict(comic.comic_metadata or {}),
    }


def list_pages(comic_id: str) -> Optional[List[str]]:
    """Page entry names in reading order, or None if the comic is unknown/unreadable."""
    path = _comic_path(comic_id)
    if path is None:
        return None
    try:
        with open_archive(path) as archive:
            return archive.list_images()
    except ArchiveError as exc:
        logger.error(f"Failed to list pages of {path.name}: {exc}")
        return None


def read_page(comic_id: str, name: str) -> Optional[tuple[bytes, str]]:
    """Return (image_bytes, content_type) for the named page.

    Only names that are real page entries are served.
    """
    path = _comic_path(comic_id)
    if path is None:
        return None
    try:
        with open_archive(path) as archive:
            if name not in archive.list_images():
                return None
            return archive.read(name), content_type_for(name)
    except ArchiveError as exc:
        logger.error(f"Failed to read page {name} of {path.name}: {exc}")
        return None
