"""Path utilities for configured library roots.

Catalog rows store absolute paths. These helpers normalise the configured
root list, answer "which root does this comic live under" and convert
filesystem paths to and from the text stored in the catalog.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

# Undecodable filename bytes are stored as \xNN escapes (only 0x80-0xff occur)
_ESCAPED_BYTE = re.compile(r"\\x([89a-f][0-9a-f])")


def normalize_directory(value: str) -> Optional[Path]:
    """Normalise a configured directory string to an absolute path.

    Strips whitespace and trailing separators. Returns None for blanks.

    Example:
        >>> normalize_directory(" /comics/marvel/ ")
        PosixPath('/comics/marvel')
    """
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return Path(os.path.abspath(os.path.expanduser(trimmed)))


def sanitize_directories(values: Iterable[str]) -> tuple[Path, ...]:
    """Normalise a list of directories, dropping blanks and duplicates (order kept)."""
    result: list[Path] = []
    seen: set[Path] = set()
    for value in values:
        path = normalize_directory(value)
        if path is not None and path not in seen:
            result.append(path)
            seen.add(path)
    return tuple(result)


def to_catalog_path(path: Union[str, Path]) -> str:
    """Text form of a filesystem path that SQLite can store.

    Valid UTF-8 names are returned unchanged; undecodable bytes become
    ``\\xNN`` escapes. ``from_catalog_path`` reverses this.
    """
    return os.fsencode(str(path)).decode("utf-8", "backslashreplace")


def from_catalog_path(value: str) -> Path:
    if "\\x" not in value:
        return Path(value)
    raw = _ESCAPED_BYTE.sub(lambda m: chr(0xDC00 + int(m.group(1), 16)), value)
    return Path(raw)


def is_within(path: Path, root: Path) -> bool:
    """Return True if path equals root or lies beneath it (component-wise)."""
    return Path(path).is_relative_to(root)


def find_root(path: Path, roots: Sequence[Path]) -> Optional[Path]:
    """Return the configured root containing path.

    When roots are nested, the deepest one wins.
    """
    matches = [root for root in roots if is_within(path, root)]
    if not matches:
        return None
    return max(matches, key=lambda root: len(root.parts))
