"""Library tree assembly for Longbox.

Builds the nested root -> publisher -> series -> comics structure served to
clients, overlaid with one user's reading progress. Read-only: comic rows
are never modified and nothing is cached between requests.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

from PIL import Image
from sqlmodel import Session

from .archive import natural_sort_key
from .config import LongboxConfig
from .database import get_engine
from .logging_config import get_logger
from .models import Comic
from .path_utils import find_root, from_catalog_path, to_catalog_path
from .repository import Repository
from .utils import as_utc, safe_dir_name

logger = get_logger(__name__)

FALLBACK_ROOT = "Library"
DEFAULT_USER = "default-user"

_LOGO_PREFERRED = re.compile(r"^logo\.(png|jpe?g|webp|gif|svg)$", re.IGNORECASE)
_LOGO_ANY = re.compile(r"\.(png|jpe?g|webp|gif|svg)$", re.IGNORECASE)

# ComicInfo fields the library view shows; the full record is fetched per comic
_DISPLAY_FIELDS = ("Number", "Series", "Title")

Visibility = Callable[[Comic], bool]


def find_logo_file(directory: Path) -> Optional[str]:
    """Return 'logo.*' if present, else any image file, else None."""
    try:
        names = sorted(p.name for p in directory.iterdir() if p.is_file())
    except OSError:
        return None

    preferred = next((n for n in names if _LOGO_PREFERRED.match(n)), None)
    if preferred:
        return preferred
    return next((n for n in names if _LOGO_ANY.search(n)), None)


def logo_needs_background(path: Path) -> bool:
    """True for a PNG with at least one non-opaque pixel."""
    try:
        with Image.open(path) as im:
            if (im.format or "").upper() != "PNG":
                return False
            if "A" not in im.getbands() and "transparency" not in im.info:
                return False
            alpha = im.convert("RGBA").getchannel("A")
            low, _high = alpha.getextrema()
            return low < 255
    except Exception as exc:
        logger.error(f"Failed to inspect logo {path}: {exc}")
        return False


def resolve_publisher_logo(publisher: str, config: LongboxConfig) -> Dict[str, Any]:
    folder = safe_dir_name(publisher)
    logo_dir = config.logos_dir / folder
    logo_file = find_logo_file(logo_dir) if logo_dir.is_dir() else None
    if logo_file is None:
        return {"logoUrl": None, "logoNeedsBackground": False}
    return {
        "logoUrl": f"logos/{quote(folder)}/{quote(logo_file)}",
        "logoNeedsBackground": logo_needs_background(logo_dir / logo_file),
    }


def display_metadata(record: Dict[str, Any]) -> Dict[str, str]:
    """Reduce a full ComicInfo record to the fields the library view shows."""
    return {field: str(record.get(field) or "") for field in _DISPLAY_FIELDS}


def comic_entry(comic: Comic, progress: Dict[str, Dict[str, int]]) -> Dict[str, Any]:
    return {
        "id": comic.id,
        "name": comic.name,
        "path": comic.path,
        "series": comic.series,
        "thumbnailPath": comic.thumbnail_path,
        "updatedAt": as_utc(comic.updated_at).isoformat() if comic.updated_at else None,
        "convertedAt": as_utc(comic.converted_at).isoformat() if comic.converted_at else None,
        "metadata": display_metadata(comic.comic_metadata or {}),
        "progress": dict(
            progress.get(comic.id)
            or {"lastReadPage": 0, "totalPages": comic.total_pages or 0}
        ),
    }


def build_library(
    user_id: str,
    config: LongboxConfig,
    is_visible: Optional[Visibility] = None,
) -> Dict[str, Any]:
    """Assemble the library tree for one user.

    :param user_id: whose progress overlay to apply.
    :param config: provides the configured roots and logos directory.
    :param is_visible: access predicate; comics it rejects are left out.
    """
    with Session(get_engine()) as session:
        repo = Repository(session)
        comics = repo.get_all_comics()
        progress = repo.get_user_progress(user_id)

    logger.debug(f"Build library with {len(comics)} rows for user {user_id}")

    roots = config.roots
    lib: Dict[str, Any] = {to_catalog_path(root): {"publishers": {}} for root in roots}

    for comic in comics:
        if is_visible is not None and not is_visible(comic):
            continue

        root = find_root(from_catalog_path(comic.path), roots)
        root_key = to_catalog_path(root) if root is not None else FALLBACK_ROOT
        publishers = lib.setdefault(root_key, {"publishers": {}})["publishers"]
        publisher = publishers.setdefault(
            comic.publisher,
            {"logoUrl": None, "logoNeedsBackground": False, "series": {}},
        )
        publisher["series"].setdefault(comic.series, []).append(comic_entry(comic, progress))

    logos: Dict[str, Dict[str, Any]] = {}
    for root_data in lib.values():
        for name, publisher in root_data["publishers"].items():
            if name not in logos:
                logos[name] = resolve_publisher_logo(name, config)
            publisher.update(logos[name])
            for entries in publisher["series"].values():
                entries.sort(key=lambda entry: natural_sort_key(entry["name"]))

    return lib
