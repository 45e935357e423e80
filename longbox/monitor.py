"""Filesystem monitoring for Longbox.

Uses Watchdog to notice comics being added, removed or moved under the
library roots and asks the scheduler for a scan. Events are debounced and
coalesced: a burst of copies results in one scan, and the scan itself
still relies on the directory mtime cache to decide what to re-read.
"""

from __future__ import annotations

import queue
import time
from pathlib import Path
from threading import Event, Thread
from typing import NamedTuple, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import LongboxConfig
from .logging_config import get_logger
from .scheduler import ScanScheduler

logger = get_logger(__name__)

WATCHED_EXTENSIONS = {".cbz", ".cbr"}


class MonitorTask(NamedTuple):
    action: str
    path: Path


def is_relevant(path: Path, is_directory: bool) -> bool:
    """Directories and comic archives matter; hidden/AppleDouble files do not."""
    if path.name.startswith("."):
        return False
    return is_directory or path.suffix.lower() in WATCHED_EXTENSIONS


class ComicLibraryHandler(FileSystemEventHandler):
    """Handle filesystem events and push them to a processing queue."""

    def __init__(self, task_queue: queue.Queue):
        super().__init__()
        self.task_queue = task_queue

    def _push(self, action: str, event: FileSystemEvent, attr: str = "src_path") -> None:
        path = Path(getattr(event, attr))
        if is_relevant(path, event.is_directory):
            self.task_queue.put(MonitorTask(action, path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._push("created", event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._push("deleted", event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._push("moved", event, attr="dest_path")


def drain_batch(task_queue: queue.Queue, window: float) -> list[MonitorTask]:
    """Collect tasks until the queue has been quiet for `window` seconds."""
    batch: list[MonitorTask] = []
    last = time.monotonic()
    while time.monotonic() - last < window:
        try:
            batch.append(task_queue.get(timeout=0.1))
            last = time.monotonic()
        except queue.Empty:
            continue
    return batch


def process_queue(
    task_queue: queue.Queue,
    scheduler: ScanScheduler,
    stop_event: Event,
    debounce_seconds: float,
) -> None:
    """Worker: turn each quiet-period batch of events into one scan request."""
    pending = False
    while not stop_event.is_set():
        try:
            first = task_queue.get(timeout=1.0)
        except queue.Empty:
            first = None

        if first is not None:
            batch = [first] + drain_batch(task_queue, debounce_seconds)
            logger.info(f"[WATCH] {len(batch)} filesystem change(s), e.g. {first.action}: {first.path.name}")
            pending = True

        # A busy scanner may have started before these changes; retry until accepted
        if pending and scheduler.trigger():
            pending = False


class LibraryMonitor:
    """Watchdog observer plus the worker thread that feeds the scheduler."""

    def __init__(self, observer: Observer, worker: Thread, stop_event: Event):
        self.observer = observer
        self.worker = worker
        self.stop_event = stop_event

    def stop(self) -> None:
        self.stop_event.set()
        self.observer.stop()
        self.observer.join()
        self.worker.join(timeout=5)


def start_file_monitoring(config: LongboxConfig, scheduler: ScanScheduler) -> Optional[LibraryMonitor]:
    """Start filesystem monitoring if enabled in config."""
    if not config.monitoring.enabled:
        return None

    roots = [root for root in config.roots if root.is_dir()]
    for missing in set(config.roots) - set(roots):
        logger.error(f"Library root does not exist: {missing}")
    if not roots:
        return None

    task_queue: queue.Queue = queue.Queue()
    stop_event = Event()

    worker = Thread(
        target=process_queue,
        args=(task_queue, scheduler, stop_event, config.monitoring.debounce_seconds),
        daemon=True,
        name="LongboxMonitorWorker",
    )
    worker.start()

    handler = ComicLibraryHandler(task_queue)
    observer = Observer()
    for root in roots:
        observer.schedule(handler, str(root), recursive=True)
    observer.start()
    logger.info(f"Watching {len(roots)} library root(s) for changes")

    return LibraryMonitor(observer, worker, stop_event)
