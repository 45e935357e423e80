"""Thumbnail generation for Longbox.

Generates JPEG thumbnails from the first page of CBZ archives,
storing them under `thumbnails/{comic_id}.jpg`.
"""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image
from sqlmodel import Session

from .archive import open_archive
from .config import LongboxConfig
from .database import get_engine
from .logging_config import get_logger
from .repository import Repository
from .utils import create_id, short_path

logger = get_logger(__name__)


def thumbnail_filename(comic_path: Path) -> str:
    return f"{create_id(comic_path)}.jpg"


def _save_thumbnail(comic_path: Path, thumb_path: Path, height: int, quality: int) -> bool:
    """Decode the first page and write the resized JPEG. Raises on archive/image errors."""
    with open_archive(comic_path) as archive:
        images = archive.list_images()
        if not images:
            logger.error(f"No images found in {comic_path.name}")
            return False

        img_bytes = archive.read(images[0])

    with Image.open(BytesIO(img_bytes)) as im:
        im = im.convert("RGB")
        # Bound the height only; thumbnail() keeps aspect ratio and never upscales
        im.thumbnail((im.width, height))
        thumb_path.parent.mkdir(parents=True, exist_ok=True)
        im.save(thumb_path, format="JPEG", quality=quality, optimize=True, progressive=True)
    return True


def generate_thumbnail(comic_path: Path, config: LongboxConfig) -> Optional[str]:
    """Generate the thumbnail for a comic unless it already exists.

    Returns the thumbnail filename, or None when no usable image could be
    produced. Never raises.
    """
    filename = thumbnail_filename(comic_path)
    thumb_path = config.thumbnails_dir / filename
    if thumb_path.exists():
        logger.debug(f"[THUMB] Skip (exists): {filename}")
        return filename

    try:
        ok = _save_thumbnail(
            comic_path,
            thumb_path,
            config.thumbnails.height,
            config.thumbnails.quality,
        )
    except Exception as exc:
        logger.error(f"[THUMB] ✗ {short_path(comic_path)}: {exc}")
        thumb_path.unlink(missing_ok=True)
        return None

    if not ok:
        return None
    logger.debug(f"[THUMB] ✓ {filename} ({comic_path.name})")
    return filename


def delete_thumbnail(filename: str, config: LongboxConfig) -> bool:
    """Delete a thumbnail file. Errors are logged, never raised."""
    thumb_path = config.thumbnails_dir / filename
    if not thumb_path.exists():
        return False
    try:
        thumb_path.unlink()
    except OSError as exc:
        logger.error(f"Failed to delete thumbnail {thumb_path}: {exc}")
        return False
    return True


def cleanup_orphaned_thumbnails(config: LongboxConfig) -> int:
    """Remove thumbnail files that don't have corresponding comics in DB.

    Returns count of deleted orphaned thumbnails.
    """
    with Session(get_engine()) as session:
        valid_ids = {comic.id for comic in Repository(session).get_all_comics()}

    thumbnails_dir = config.thumbnails_dir
    if not thumbnails_dir.exists():
        return 0

    deleted = 0
    for thumb_file in thumbnails_dir.glob("*.jpg"):
        if thumb_file.stem in valid_ids:
            continue
        try:
            thumb_file.unlink()
            deleted += 1
        except OSError as exc:
            logger.error(f"Failed to remove thumbnail {thumb_file}: {exc}")

    return deleted
