"""Utility functions for Longbox."""

from __future__ import annotations

import hashlib
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .logging_config import get_logger

logger = get_logger(__name__)


def create_id(path: Union[str, Path]) -> str:
    """Return the catalog identity for a comic: SHA-1 hex of its absolute path.

    Hashes the filesystem bytes of the path, so names that are not valid
    UTF-8 still get an identity. Moving or renaming a file changes it.
    """
    return hashlib.sha1(os.fsencode(str(path))).hexdigest()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite hands timestamps back without a zone)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def safe_dir_name(name: str) -> str:
    """Folder name for a publisher under logos/ (no separators, single spaces)."""
    cleaned = re.sub(r"[\\/]+", "_", str(name).strip())
    return re.sub(r"\s+", " ", cleaned)


def short_path(path: Path) -> str:
    """Return abbreviated path showing only parent folder + filename.

    Example: /very/long/path/to/folder/file.cbz -> folder/file.cbz
    """
    return f"{path.parent.name}/{path.name}"
