"""Config management for Longbox.

Reads `config.ini` from DATA_DIR (beside main.py unless the DATA_DIR
environment variable points elsewhere).
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import re
import sys
from typing import Optional

from .logging_config import get_logger
from .path_utils import normalize_directory, sanitize_directories

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds all persistent state (config.ini, library.db, thumbnails/, logos/, temp/).
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"

DEFAULT_CONVERT_COMMAND = "unrar x -o+ -y {archive} {dest}/"


@dataclasses.dataclass
class LibraryConfig:
    roots: tuple[pathlib.Path, ...] = ()
    conversion_root: Optional[pathlib.Path] = None


@dataclasses.dataclass
class ScannerConfig:
    interval_minutes: int = 5
    ignore_patterns: tuple[str, ...] = (".DS_Store", "Thumbs.db", "@eaDir")
    marker_file: str = ".metadata.txt"
    temp_max_age_hours: int = 24


@dataclasses.dataclass
class ThumbnailConfig:
    height: int = 300
    quality: int = 80


@dataclasses.dataclass
class ConverterConfig:
    command: str = DEFAULT_CONVERT_COMMAND
    timeout_seconds: int = 30 * 60


@dataclasses.dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclasses.dataclass
class MonitoringConfig:
    enabled: bool = False
    debounce_seconds: int = 5


@dataclasses.dataclass
class LongboxConfig:
    library: LibraryConfig
    scanner: ScannerConfig = dataclasses.field(default_factory=ScannerConfig)
    thumbnails: ThumbnailConfig = dataclasses.field(default_factory=ThumbnailConfig)
    converter: ConverterConfig = dataclasses.field(default_factory=ConverterConfig)
    server: ServerConfig = dataclasses.field(default_factory=ServerConfig)
    monitoring: MonitoringConfig = dataclasses.field(default_factory=MonitoringConfig)
    data_dir: pathlib.Path = DATA_DIR

    @property
    def roots(self) -> tuple[pathlib.Path, ...]:
        return self.library.roots

    @property
    def conversion_root(self) -> Optional[pathlib.Path]:
        """Directory under which CBR files may be converted (and deleted).

        Falls back to the first library root when not set explicitly.
        """
        if self.library.conversion_root is not None:
            return self.library.conversion_root
        return self.library.roots[0] if self.library.roots else None

    @property
    def scan_interval_seconds(self) -> int:
        return max(1, self.scanner.interval_minutes) * 60

    @property
    def database_path(self) -> pathlib.Path:
        return self.data_dir / "library.db"

    @property
    def thumbnails_dir(self) -> pathlib.Path:
        return self.data_dir / "thumbnails"

    @property
    def logos_dir(self) -> pathlib.Path:
        return self.data_dir / "logos"

    @property
    def temp_dir(self) -> pathlib.Path:
        return self.data_dir / "temp"


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _split_list(value: str) -> list[str]:
    """Split a comma- or newline-separated INI value."""
    return [part.strip() for part in re.split(r"[,\n]", value) if part.strip()]


def load_config(config_path: Optional[pathlib.Path] = None) -> LongboxConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in DATA_DIR.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    roots = sanitize_directories(
        _split_list(parser.get("library", "roots", fallback=""))
    )
    conversion_root = normalize_directory(
        parser.get("library", "conversion_root", fallback="")
    )
    if not roots:
        if conversion_root is not None:
            logger.warning("No library roots configured; defaulting to conversion_root for scans.")
            roots = (conversion_root,)
        else:
            logger.warning("No library roots configured; library scans are disabled.")

    scanner = ScannerConfig(
        interval_minutes=max(1, parser.getint("scanner", "interval_minutes", fallback=5)),
        ignore_patterns=tuple(
            _split_list(
                parser.get(
                    "scanner",
                    "ignore_patterns",
                    fallback=".DS_Store,Thumbs.db,@eaDir",
                )
            )
        ),
        marker_file=parser.get("scanner", "marker_file", fallback=".metadata.txt").strip(),
        temp_max_age_hours=parser.getint("scanner", "temp_max_age_hours", fallback=24),
    )

    thumbs = ThumbnailConfig(
        height=parser.getint("thumbnails", "height", fallback=300),
        quality=parser.getint("thumbnails", "quality", fallback=80),
    )

    converter = ConverterConfig(
        command=parser.get("converter", "command", fallback=DEFAULT_CONVERT_COMMAND, raw=True),
        timeout_seconds=parser.getint("converter", "timeout_seconds", fallback=30 * 60),
    )

    server = ServerConfig(
        host=parser.get("server", "host", fallback="0.0.0.0"),
        port=parser.getint("server", "port", fallback=3000),
    )

    monitoring = MonitoringConfig(
        enabled=_parse_bool(parser.get("monitoring", "enabled", fallback="false"), False),
        debounce_seconds=parser.getint("monitoring", "debounce_seconds", fallback=5),
    )

    return LongboxConfig(
        library=LibraryConfig(roots=roots, conversion_root=conversion_root),
        scanner=scanner,
        thumbnails=thumbs,
        converter=converter,
        server=server,
        monitoring=monitoring,
        data_dir=path.parent,
    )


def write_default_config(
    config_path: pathlib.Path,
    roots: list[pathlib.Path],
    conversion_root: Optional[pathlib.Path] = None,
) -> None:
    """Write a config.ini with default settings for the given roots."""
    parser = configparser.ConfigParser(interpolation=None)

    parser["library"] = {
        "roots": ",".join(str(root.expanduser()) for root in roots),
        "conversion_root": str(conversion_root.expanduser()) if conversion_root else "",
    }
    parser["scanner"] = {
        "interval_minutes": "5",
        "ignore_patterns": ".DS_Store,Thumbs.db,@eaDir",
        "marker_file": ".metadata.txt",
        "temp_max_age_hours": "24",
    }
    parser["thumbnails"] = {
        "height": "300",
        "quality": "80",
    }
    parser["converter"] = {
        "command": DEFAULT_CONVERT_COMMAND,
        "timeout_seconds": str(30 * 60),
    }
    parser["server"] = {
        "host": "0.0.0.0",
        "port": "3000",
    }
    parser["monitoring"] = {
        "enabled": "false",
        "debounce_seconds": "5",
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w") as handle:
        parser.write(handle)


_cached_config: Optional[LongboxConfig] = None


def get_config() -> LongboxConfig:
    """Return the cached config singleton. Loads from disk on first call."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None
