"""Logging setup for Longbox.

Console output goes through Rich; every record (DEBUG and up) also lands
in a rotating ``longbox.log`` inside the data directory.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

LOG_FILENAME = "longbox.log"
LOG_FORMAT = "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s"

# Third-party loggers capped at these levels
QUIET_LOGGERS = {
    "watchdog": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "PIL": logging.INFO,
    "multipart": logging.INFO,
}

_THEME = Theme({"logging.level.info": "bold cyan"})

_configured = False


def _default_log_dir() -> Path:
    return Path(os.environ.get("DATA_DIR") or Path(__file__).resolve().parents[1])


def setup_logging(log_level: Optional[str] = None, data_dir: Optional[Path] = None) -> Optional[Path]:
    """Install the file and console handlers on the root logger, once per process.

    Args:
        log_level: Console level name; falls back to $LONGBOX_LOG_LEVEL, then INFO.
        data_dir: Where longbox.log is written; defaults to $DATA_DIR.

    Returns:
        The log file path, or None if logging was already configured.
    """
    global _configured
    if _configured:
        return None

    level_name = (log_level or os.environ.get("LONGBOX_LOG_LEVEL") or "INFO").upper()
    console_level = logging.getLevelName(level_name)
    if not isinstance(console_level, int):
        console_level = logging.INFO

    log_dir = data_dir or _default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILENAME

    file_handler = RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8", errors="backslashreplace"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    # [SCAN]-style prefixes must not be read as Rich markup
    console_handler = RichHandler(
        console=Console(stderr=True, theme=_THEME),
        level=console_level,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
        markup=False,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    alembic_logger = logging.getLogger("alembic")
    alembic_logger.handlers.clear()
    alembic_logger.propagate = True

    _configured = True
    return log_file


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
