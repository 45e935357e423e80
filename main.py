"""Longbox CLI entry point."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from sqlmodel import Session

from longbox.config import DEFAULT_CONFIG_PATH, LongboxConfig, load_config, write_default_config
from longbox.database import configure_database, get_engine, init_db, reset_database
from longbox.library import DEFAULT_USER, build_library
from longbox.logging_config import setup_logging
from longbox.migrations import get_status, migrate_to_head
from longbox.pages import list_pages
from longbox.repository import Repository
from longbox.scanner import scan_library
from longbox.scheduler import ScanScheduler
from longbox.thumbnails import cleanup_orphaned_thumbnails


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Longbox comic catalog CLI")
logger = logging.getLogger("longbox")

_log_level = "INFO"


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="Console log level (DEBUG, INFO, WARNING)"),
) -> None:
    global _log_level
    _log_level = log_level


def _ensure_config() -> LongboxConfig:
    """Load config.ini, start logging in its data dir and open its catalog."""
    try:
        config = load_config()
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: longbox init --root /path/to/comics")
        raise typer.Exit(code=1)

    setup_logging(_log_level, config.data_dir)
    configure_database(config.database_path)
    init_db()
    return config


@app.command()
def init(
    root: List[Path] = typer.Option(..., "--root", help="Comics directory to scan (repeatable)"),
    conversion_root: Optional[Path] = typer.Option(
        None, "--conversion-root", help="Directory where CBR files may be converted to CBZ"
    ),
) -> None:
    """Write config.ini with default settings."""
    write_default_config(DEFAULT_CONFIG_PATH, root, conversion_root)
    typer.echo(f"[OK] Config created at {DEFAULT_CONFIG_PATH}")


@app.command()
def scan(
    full: bool = typer.Option(False, "--full", help="Clear the directory cache and re-read everything"),
) -> None:
    """Run one scan cycle and update the catalog."""
    config = _ensure_config()
    stats = scan_library(config, full=full)
    if stats is None:
        typer.echo("[WARN] A scan is already running.")
        raise typer.Exit(code=1)

    typer.echo(
        "✓ Scan completed: "
        f"{stats.seen} seen, "
        f"{stats.upserted} upserted, "
        f"{stats.converted} converted, "
        f"{stats.removed} removed, "
        f"{stats.errors} errors."
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", help="Server port"),
    no_watch: bool = typer.Option(False, "--no-watch", help="Disable file monitoring"),
) -> None:
    """Start the API server with periodic (and optionally watched) scans."""
    from longbox.api import run_server
    from longbox.monitor import start_file_monitoring

    config = _ensure_config()
    migrate_to_head()

    scheduler = ScanScheduler(config)
    logger.info("Running initial library scan...")
    scan_library(config)
    scheduler.start()

    monitor = None
    if not no_watch:
        monitor = start_file_monitoring(config, scheduler)
    else:
        logger.info("File monitoring disabled")

    try:
        run_server(config, scheduler, host=host, port=port)
    except KeyboardInterrupt:
        pass
    finally:
        if monitor:
            monitor.stop()
        scheduler.stop(timeout=5)


@app.command()
def tree(
    user: str = typer.Option(DEFAULT_USER, "--user", help="User whose progress to overlay"),
) -> None:
    """Print the library tree as JSON."""
    config = _ensure_config()
    typer.echo(json.dumps(build_library(user, config), indent=2, ensure_ascii=False))


@app.command()
def pages(comic_id: str = typer.Argument(..., help="Comic id")) -> None:
    """List the page entries of a comic in reading order."""
    _ensure_config()
    names = list_pages(comic_id)
    if names is None:
        typer.echo(f"[ERROR] Comic not found or unreadable: {comic_id}")
        raise typer.Exit(code=1)
    for name in names:
        typer.echo(name)


@app.command()
def cleanup() -> None:
    """Remove thumbnails that no longer belong to a cataloged comic."""
    config = _ensure_config()
    deleted = cleanup_orphaned_thumbnails(config)
    typer.echo(f"[INFO] Removed {deleted} orphaned thumbnails")


@app.command()
def stats() -> None:
    """Show catalog statistics."""
    config = _ensure_config()

    with Session(get_engine()) as session:
        comics = Repository(session).get_all_comics()

    total = len(comics)
    with_thumbs = len([c for c in comics if c.thumbnail_path])
    converted = len([c for c in comics if c.converted_at])
    publishers = {c.publisher for c in comics}
    percent = (with_thumbs / total * 100) if total else 0

    typer.echo("Catalog Statistics:")
    typer.echo(f"  Roots: {', '.join(str(r) for r in config.roots) or '(none)'}")
    typer.echo(f"  Total comics: {total}")
    typer.echo(f"  Publishers: {len(publishers)}")
    typer.echo(f"  Converted from CBR: {converted}")
    typer.echo(f"  Thumbnails: {with_thumbs} / {total} ({percent:.0f}%)")


@app.command()
def migrate(
    check: bool = typer.Option(False, "--check", help="Print status and exit (1 if not at head)"),
) -> None:
    """Run pending catalog migrations (or check status with --check)."""
    _ensure_config()

    if check:
        status = get_status()
        if status.up_to_date:
            typer.echo(f"[OK] Catalog at {status.head} (head).")
            raise typer.Exit(code=0)
        typer.echo(f"[WARN] Catalog behind: current {status.current}, head {status.head}")
        raise typer.Exit(code=1)

    status = migrate_to_head()
    typer.echo(f"[OK] Catalog at {status.current}.")


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm destructive reset"),
) -> None:
    """Reset the catalog and thumbnails, then rescan everything."""
    if not confirm:
        typer.echo("[ERROR] This will delete your catalog and thumbnails. Use --confirm.")
        raise typer.Exit(code=1)

    config = _ensure_config()
    reset_database()
    if config.thumbnails_dir.exists():
        for file_path in config.thumbnails_dir.glob("*.jpg"):
            file_path.unlink()

    typer.echo("[INFO] Catalog and thumbnails reset. Rescanning library...")
    scan_library(config, full=True)


if __name__ == "__main__":
    app()
