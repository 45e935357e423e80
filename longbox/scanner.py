"""Filesystem scanner for Longbox.

Responsible for syncing the configured library roots into the catalog.

Implements:
- single-flight scan cycles (concurrent requests are dropped, not queued)
- directory-level change detection via cached mtimes (+ marker file)
- CBR normalisation, thumbnails and ComicInfo extraction per comic
- reclaiming catalog rows and thumbnails for files gone from disk
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .archive import count_pages
from .comicinfo import read_comicinfo_from_archive
from .config import LongboxConfig
from .converter import (
    CANONICAL_EXTENSION,
    CommandRunner,
    cleanup_temp_dir,
    convert_cbr_to_cbz,
    is_convertible,
    is_legacy_archive,
)
from .database import get_engine, init_db
from .logging_config import get_logger
from .path_utils import to_catalog_path
from .repository import Repository
from .thumbnails import delete_thumbnail, generate_thumbnail
from .utils import create_id, short_path

logger = get_logger(__name__)

UNKNOWN_PUBLISHER = "Unknown Publisher"
UNKNOWN_SERIES = "Unknown Series"

# Held for the whole cycle; acquired non-blocking so a second trigger is a no-op
_scan_lock = threading.Lock()


@dataclass
class ScanStats:
    seen: int = 0
    upserted: int = 0
    converted: int = 0
    thumb_ok: int = 0
    thumb_fail: int = 0
    errors: int = 0
    skipped_dirs: int = 0
    removed: int = 0


def is_scanning() -> bool:
    return _scan_lock.locked()


def _should_ignore(name: str, ignore_patterns: Iterable[str]) -> bool:
    """Dot-files (incl. macOS ._* files) and configured patterns are never scanned."""
    return name.startswith(".") or name in ignore_patterns


def effective_mtime(directory: Path, marker_file: str) -> float:
    """Directory mtime in ms, bumped by the marker file's mtime when that is newer."""
    mtime = directory.stat().st_mtime * 1000
    marker = directory / marker_file
    try:
        if marker.is_file():
            mtime = max(mtime, marker.stat().st_mtime * 1000)
    except OSError:
        pass
    return mtime


def _list_directory(directory: Path, ignore_patterns: Tuple[str, ...]) -> Tuple[List[Path], List[Path]]:
    """Return (subdirectories, files) of directory, sorted, ignoring hidden entries."""
    subdirs: List[Path] = []
    files: List[Path] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if _should_ignore(entry.name, ignore_patterns):
                continue
            try:
                if entry.is_dir():
                    subdirs.append(Path(entry.path))
                elif entry.is_file():
                    files.append(Path(entry.path))
            except OSError:
                continue
    subdirs.sort()
    files.sort()
    return subdirs, files


def iter_directories(
    root: Path,
    ignore_patterns: Tuple[str, ...],
    marker_file: str,
) -> Iterator[Tuple[Path, float, List[Path]]]:
    """Depth-first walk of root using an explicit stack.

    Yields (directory, effective_mtime, files). The mtime is read before the
    listing, so an entry added in between makes the next cycle look again.
    Unreadable directories are logged and skipped.
    """
    stack: List[Path] = [root]
    while stack:
        directory = stack.pop()
        try:
            mtime = effective_mtime(directory, marker_file)
            subdirs, files = _list_directory(directory, ignore_patterns)
        except OSError as exc:
            logger.error(f"[SCAN] Cannot read {directory}: {exc}")
            continue
        yield directory, mtime, files
        # Reverse so the alphabetically-first subdirectory is visited next
        stack.extend(reversed(subdirs))


class _ScanCycle:
    """State for one scan cycle: catalog snapshot, seen set and counters."""

    def __init__(self, config: LongboxConfig, repo: Repository, runner: Optional[CommandRunner]):
        self.config = config
        self.repo = repo
        self.runner = runner
        self.stats = ScanStats()
        self.catalog: Dict[str, Optional[str]] = repo.get_catalog_paths()
        self.seen: Set[str] = set()
        self.visited_dirs: Set[str] = set()
        self.conversion_root = config.conversion_root
        self.failed_conversions = 0

    def walk_root(self, root: Path) -> None:
        if not root.is_dir():
            logger.error(f"[SCAN] Missing dir: {root}")
            return

        start = time.monotonic()
        logger.info(f"[SCAN] Walk: {root}")
        ignore = tuple(self.config.scanner.ignore_patterns)
        for directory, mtime, files in iter_directories(root, ignore, self.config.scanner.marker_file):
            self.walk_directory(directory, mtime, files)
        logger.info(f"[SCAN] Walk done: {root} in {(time.monotonic() - start) * 1000:.0f} ms")

    def walk_directory(self, directory: Path, mtime: float, files: List[Path]) -> None:
        self.visited_dirs.add(to_catalog_path(directory))
        cached = self.repo.get_scan_dir_mtime(directory)
        if cached is not None and mtime <= cached:
            logger.debug(f"[SCAN] Skipping unchanged dir: {directory}")
            self.stats.skipped_dirs += 1
            self.mark_cataloged_seen(directory)
            return

        logger.info(f"[SCAN] {directory} ({len(files)} files)")
        failed_before = self.failed_conversions
        for file_path in files:
            self.process_file(file_path)

        if self.failed_conversions > failed_before:
            # Leave the cache stale so the legacy archive is converted again next cycle
            logger.debug(f"[SCAN] {directory} had failed conversions; not caching mtime")
            return
        try:
            self.repo.set_scan_dir_mtime(directory, mtime)
            self.repo.commit()
        except SQLAlchemyError as exc:
            self.repo.rollback()
            logger.error(f"[SCAN] Cannot cache {directory}: {exc}")

    def mark_cataloged_seen(self, directory: Path) -> None:
        """Keep every previously cataloged comic directly inside directory."""
        prefix = to_catalog_path(directory)
        for path in self.catalog:
            if os.path.dirname(path) == prefix:
                self.seen.add(path)

    def process_file(self, file_path: Path) -> None:
        converted = False
        try:
            if is_legacy_archive(file_path):
                if not is_convertible(file_path, self.conversion_root):
                    logger.debug(f"[SCAN] Skipping convert outside conversion root: {file_path.name}")
                    return
                new_path = convert_cbr_to_cbz(file_path, self.config, self.runner)
                if new_path is None:
                    self.stats.errors += 1
                    self.failed_conversions += 1
                    return
                file_path = new_path
                converted = True
                self.stats.converted += 1

            if file_path.suffix.lower() != CANONICAL_EXTENSION:
                return

            self.stats.seen += 1
            self.seen.add(to_catalog_path(file_path))
            self.catalog_comic(file_path, converted)
            self.stats.upserted += 1
        except Exception as exc:
            self.stats.errors += 1
            # A failed flush leaves the session unusable until rolled back
            self.repo.rollback()
            logger.error(f"[SCAN] ✗ Failed to process {short_path(file_path)}: {exc}")

    def catalog_comic(self, comic_path: Path, converted: bool) -> None:
        comic_id = create_id(comic_path)
        existing = self.repo.get_comic(comic_id)

        # Raises ArchiveError for a corrupt archive: counted as an error, not cataloged
        page_count = count_pages(comic_path)

        thumbnail = generate_thumbnail(comic_path, self.config)
        if thumbnail:
            self.stats.thumb_ok += 1
        else:
            self.stats.thumb_fail += 1

        info = read_comicinfo_from_archive(comic_path)
        record = info.to_record()

        total_pages = page_count or (existing.total_pages if existing else 0)
        if converted:
            converted_at = datetime.now(timezone.utc)
        else:
            converted_at = existing.converted_at if existing else None

        self.repo.upsert_comic(
            comic_id=comic_id,
            path=comic_path,
            name=to_catalog_path(comic_path.name),
            publisher=info.publisher or UNKNOWN_PUBLISHER,
            series=info.series or UNKNOWN_SERIES,
            thumbnail_path=thumbnail,
            comic_metadata=record,
            total_pages=total_pages,
            updated_at=datetime.fromtimestamp(comic_path.stat().st_mtime, tz=timezone.utc),
            converted_at=converted_at,
        )
        self.repo.commit()
        logger.debug(f"{'✓' if thumbnail else '✗'} {comic_path.name} ({total_pages} pages)")


def reclaim_orphans(
    repo: Repository,
    catalog: Dict[str, Optional[str]],
    seen: Set[str],
    config: LongboxConfig,
) -> int:
    """Delete catalog rows (and thumbnails) whose path was not seen this cycle.

    Returns the number of rows removed.
    """
    removed = 0
    for path, thumb in catalog.items():
        if path in seen:
            continue
        logger.info(f"[-] Removing missing comic: {os.path.basename(path)}")
        repo.delete_comic_by_path(path)
        if thumb:
            delete_thumbnail(thumb, config)
        removed += 1
    repo.commit()
    return removed


def clear_scan_cache() -> int:
    """Forget every cached directory mtime so the next scan re-reads everything."""
    with Session(get_engine()) as session:
        repo = Repository(session)
        cleared = repo.clear_scan_dirs()
        repo.commit()
    return cleared


def _run_cycle(config: LongboxConfig, runner: Optional[CommandRunner]) -> ScanStats:
    try:
        cleanup_temp_dir(config)
    except OSError as exc:
        logger.error(f"[SCAN] Temp cleanup failed: {exc}")

    roots = config.roots
    logger.info(
        "[SCAN] Starting scan… Directories: "
        + (", ".join(str(r) for r in roots) if roots else "(none set)")
    )

    with Session(get_engine()) as session:
        repo = Repository(session)
        cycle = _ScanCycle(config, repo, runner)
        for root in roots:
            cycle.walk_root(root)

        # Only after every root: the seen set must be complete
        cycle.stats.removed = reclaim_orphans(repo, cycle.catalog, cycle.seen, config)

        pruned = repo.prune_scan_dirs(cycle.visited_dirs)
        repo.commit()
        if pruned:
            logger.debug(f"[SCAN] Pruned {pruned} stale scan-cache rows")

    return cycle.stats


def _scan_holding_lock(
    config: LongboxConfig,
    full: bool,
    runner: Optional[CommandRunner],
) -> ScanStats:
    """Run one cycle; the caller has acquired _scan_lock and this releases it."""
    start = time.monotonic()
    stats = ScanStats()
    try:
        init_db()
        if full:
            cleared = clear_scan_cache()
            logger.info(f"[SCAN] Full scan requested; cleared {cleared} cached directories")
        stats = _run_cycle(config, runner)
    except Exception:
        logger.exception("[SCAN] Scan error")
    finally:
        _scan_lock.release()

    elapsed = (time.monotonic() - start) * 1000
    logger.info(
        f"[SCAN] Scan complete in {elapsed:.0f} ms. "
        f"Seen: {stats.seen}, Upserted: {stats.upserted}, Converted: {stats.converted}, "
        f"Thumbs: {stats.thumb_ok} ok / {stats.thumb_fail} fail, Errors: {stats.errors}, "
        f"Removed: {stats.removed}"
    )
    return stats


def scan_library(
    config: LongboxConfig,
    full: bool = False,
    runner: Optional[CommandRunner] = None,
) -> Optional[ScanStats]:
    """Run one scan cycle over all configured roots.

    :param config: Loaded Longbox configuration.
    :param full: Clear the directory cache first so every directory is re-read.
    :param runner: Command runner for CBR extraction (tests inject a fake).
    :return: Counters for the cycle, or None if a scan was already running.
    """
    if not _scan_lock.acquire(blocking=False):
        logger.info("[SCAN] Already scanning; skip.")
        return None
    return _scan_holding_lock(config, full, runner)


def start_background_scan(
    config: LongboxConfig,
    full: bool = False,
    runner: Optional[CommandRunner] = None,
) -> bool:
    """Claim the scan lock and run the cycle on a daemon thread.

    The lock is taken before the thread starts, so of two concurrent callers
    exactly one gets True. Returns False if a scan is already running.
    """
    if not _scan_lock.acquire(blocking=False):
        logger.info("[SCAN] Scan requested while one is running; ignored.")
        return False

    worker = threading.Thread(
        target=_scan_holding_lock,
        args=(config, full, runner),
        daemon=True,
        name="LongboxScanTrigger",
    )
    try:
        worker.start()
    except RuntimeError:
        _scan_lock.release()
        raise
    return True
