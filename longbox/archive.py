"""Archive handling utilities for Longbox.

CBZ files are plain ZIP containers. Page order everywhere (thumbnail,
page count, reader) is the natural sort of the image entries.
"""

from __future__ import annotations

import re
import zipfile
from pathlib import Path
from typing import List, Union

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

# Entries under these prefixes are OS metadata, never comic pages
JUNK_PREFIXES = ("__MACOSX/",)


class ArchiveError(Exception):
    """Raised when a comic archive cannot be opened or read."""


def is_image(filename: str) -> bool:
    return Path(filename).suffix.lower() in IMAGE_EXTENSIONS


def is_junk(filename: str) -> bool:
    """True for entries inside metadata-junk directories or AppleDouble files."""
    if filename.startswith(JUNK_PREFIXES):
        return True
    return Path(filename).name.startswith("._")


def natural_sort_key(name: str):
    """Sort key so page2 comes before page10 (case-insensitive)."""
    parts = re.split(r"(\d+)", name)
    return [int(part) if part.isdigit() else part.lower() for part in parts]


class ZipArchive:
    def __init__(self, path: Union[str, Path]):
        try:
            self.zf = zipfile.ZipFile(path, mode="r")
        except (zipfile.BadZipFile, OSError) as exc:
            raise ArchiveError(f"Cannot open {Path(path).name}: {exc}") from exc

    def list_names(self) -> List[str]:
        """List all entry names (for finding ComicInfo.xml etc.)."""
        return self.zf.namelist()

    def list_images(self) -> List[str]:
        """Page entries in reading order."""
        images = [
            n for n in self.zf.namelist()
            if not n.endswith("/") and is_image(n) and not is_junk(n)
        ]
        images.sort(key=natural_sort_key)
        return images

    def read(self, filename: str) -> bytes:
        try:
            return self.zf.read(filename)
        except (zipfile.BadZipFile, KeyError, OSError) as exc:
            raise ArchiveError(f"Cannot read {filename}: {exc}") from exc

    def close(self) -> None:
        self.zf.close()

    def __enter__(self) -> "ZipArchive":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def open_archive(path: Union[str, Path]) -> ZipArchive:
    """Open a CBZ archive. Raises ArchiveError if it is missing or not a ZIP."""
    path = Path(path)
    if not path.is_file():
        raise ArchiveError(f"File not found: {path}")
    return ZipArchive(path)


def count_pages(path: Union[str, Path]) -> int:
    """Return the number of page images. Raises ArchiveError on a corrupt archive."""
    with open_archive(path) as archive:
        return len(archive.list_images())
