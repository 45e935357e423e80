"""Periodic and on-demand scan scheduling for Longbox.

The next periodic scan is scheduled only after the previous cycle has
finished, so a slow cycle can never overlap the next one.
"""

from __future__ import annotations

from threading import Event, Thread
from typing import Optional

from .config import LongboxConfig
from .converter import CommandRunner
from .logging_config import get_logger
from .scanner import scan_library, start_background_scan

logger = get_logger(__name__)


class ScanScheduler:
    """Background thread running scan_library every `interval_seconds`."""

    def __init__(
        self,
        config: LongboxConfig,
        runner: Optional[CommandRunner] = None,
        interval_seconds: Optional[float] = None,
    ):
        self.config = config
        self.runner = runner
        self.interval_seconds = interval_seconds or config.scan_interval_seconds
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                scan_library(self.config, runner=self.runner)
            except Exception:
                logger.exception("[SCAN] Scheduled scan failed")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, daemon=True, name="LongboxScanScheduler")
        self._thread.start()
        logger.info(f"Scan scheduler started (every {self.interval_seconds:.0f}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def trigger(self, full: bool = False) -> bool:
        """Start a scan in the background and return immediately.

        Returns False (and starts nothing) if a scan is already running.
        """
        return start_background_scan(self.config, full=full, runner=self.runner)
