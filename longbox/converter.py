"""CBR to CBZ conversion for Longbox.

Legacy RAR-based archives inside the conversion root are extracted with an
external tool (unrar by default), re-packed as an uncompressed ZIP next to
the original and the original is deleted. Anything that goes wrong leaves
the source file untouched so the next scan can retry it.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from .config import LongboxConfig
from .logging_config import get_logger
from .path_utils import is_within
from .utils import create_id

logger = get_logger(__name__)

LEGACY_EXTENSION = ".cbr"
CANONICAL_EXTENSION = ".cbz"


class ConversionError(Exception):
    """Raised when an archive cannot be converted."""


@dataclass
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandRunner(Protocol):
    def run(self, args: Sequence[str], cwd: Path, timeout: Optional[float]) -> CommandResult:
        ...


class SubprocessRunner:
    """Run the extractor as a child process.

    A missing executable or an exceeded timeout becomes a ConversionError.
    """

    def run(self, args: Sequence[str], cwd: Path, timeout: Optional[float]) -> CommandResult:
        try:
            proc = subprocess.run(
                list(args),
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ConversionError(f"Extractor not found: {args[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ConversionError(f"Extractor timed out after {timeout}s") from exc
        return CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")


def is_legacy_archive(path: Path) -> bool:
    return path.suffix.lower() == LEGACY_EXTENSION


def is_convertible(path: Path, conversion_root: Optional[Path]) -> bool:
    """True for a .cbr that lies inside the conversion root."""
    if conversion_root is None or not is_legacy_archive(path):
        return False
    return is_within(path.resolve(), conversion_root.resolve())


def build_command(template: str, archive: Path, dest: Path) -> list[str]:
    """Split the configured command template and fill {archive} / {dest}."""
    return [
        part.replace("{archive}", str(archive)).replace("{dest}", str(dest))
        for part in shlex.split(template)
    ]


def pack_directory(source_dir: Path, cbz_path: Path) -> int:
    """Zip every file under source_dir into cbz_path with stored (uncompressed) entries.

    Entries are written in sorted relative-path order. Timestamps outside the
    ZIP range (before 1980) are clamped. Returns the entry count.
    """
    files = sorted(
        (p for p in source_dir.rglob("*") if p.is_file()),
        key=lambda p: p.relative_to(source_dir).as_posix(),
    )
    with zipfile.ZipFile(cbz_path, "w", compression=zipfile.ZIP_STORED, strict_timestamps=False) as zf:
        for file_path in files:
            zf.write(file_path, arcname=file_path.relative_to(source_dir).as_posix())
    return len(files)


def _convert(cbr_path: Path, cbz_path: Path, work_dir: Path, config: LongboxConfig, runner: CommandRunner) -> None:
    args = build_command(config.converter.command, cbr_path, work_dir)
    result = runner.run(args, cwd=cbr_path.parent, timeout=config.converter.timeout_seconds)
    if result.returncode != 0:
        message = result.stderr.strip() or result.stdout.strip() or f"exit code {result.returncode}"
        raise ConversionError(message)

    tmp_cbz = cbz_path.with_name(cbz_path.name + ".tmp")
    try:
        count = pack_directory(work_dir, tmp_cbz)
        if count == 0:
            raise ConversionError("extractor produced no files")
        os.replace(tmp_cbz, cbz_path)
    finally:
        tmp_cbz.unlink(missing_ok=True)


def convert_cbr_to_cbz(
    cbr_path: Path,
    config: LongboxConfig,
    runner: Optional[CommandRunner] = None,
) -> Optional[Path]:
    """Convert a CBR inside the conversion root to CBZ in place.

    Returns the new .cbz path, or None if the file was left untouched
    (outside the conversion root, extractor failure, target exists).
    """
    if not is_convertible(cbr_path, config.conversion_root):
        logger.info(f"[CONVERT] Skipping convert outside conversion root: {cbr_path.name}")
        return None

    cbz_path = cbr_path.with_suffix(CANONICAL_EXTENSION)
    if cbz_path.exists():
        logger.warning(f"[CONVERT] ✗ {cbr_path.name}: {cbz_path.name} already exists")
        return None

    runner = runner or SubprocessRunner()
    # Keyed by identity so concurrent conversions never share a directory
    work_dir = config.temp_dir / create_id(cbr_path)
    start = time.monotonic()
    logger.info(f"[CONVERT] Converting: {cbr_path.name}")

    try:
        shutil.rmtree(work_dir, ignore_errors=True)
        work_dir.mkdir(parents=True)
        _convert(cbr_path, cbz_path, work_dir, config, runner)
    except (ConversionError, OSError, ValueError, zipfile.BadZipFile) as exc:
        elapsed = (time.monotonic() - start) * 1000
        logger.error(f"[CONVERT] ✗ {cbr_path.name}: {exc} after {elapsed:.0f} ms")
        return None
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    try:
        cbr_path.unlink()
    except OSError as exc:
        logger.error(f"[CONVERT] Created {cbz_path.name} but could not remove {cbr_path.name}: {exc}")

    elapsed = (time.monotonic() - start) * 1000
    logger.info(f"[CONVERT] ✓ Created: {cbz_path.name} in {elapsed:.0f} ms")
    return cbz_path


def cleanup_temp_dir(config: LongboxConfig) -> int:
    """Remove leftovers in temp/ older than the configured age. Returns removed count."""
    temp_dir = config.temp_dir
    if not temp_dir.exists():
        return 0

    cutoff = time.time() - config.scanner.temp_max_age_hours * 3600
    removed = 0
    for entry in temp_dir.iterdir():
        try:
            if entry.stat().st_mtime >= cutoff:
                continue
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        except OSError as exc:
            logger.error(f"Temp cleanup failed for {entry}: {exc}")
    return removed
