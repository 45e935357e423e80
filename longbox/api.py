"""FastAPI adapter for Longbox.

Exposes the catalog operations to HTTP clients:
- POST /api/scan                          (trigger; {"full": true} clears the dir cache)
- GET  /api/scan                          (is a scan running?)
- GET  /api/library                       (tree for the X-User-Id user)
- GET  /api/comics/{comic_id}             (full catalog record)
- GET  /api/comics/{comic_id}/pages
- GET  /api/comics/{comic_id}/pages/{name}
- GET  /thumbnails/{filename}
- GET  /logos/{folder}/{filename}

Authentication and access control live in front of this app.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import FileResponse
from pydantic import BaseModel

from .config import LongboxConfig, get_config
from .library import DEFAULT_USER, build_library
from .logging_config import get_logger
from .pages import get_comic_details, list_pages, read_page
from .scanner import is_scanning
from .scheduler import ScanScheduler

logger = get_logger(__name__)

app = FastAPI(title="Longbox", docs_url=None, redoc_url=None)


class ScanRequest(BaseModel):
    full: bool = False


def _scheduler(request: Request) -> ScanScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        scheduler = ScanScheduler(get_config())
        request.app.state.scheduler = scheduler
    return scheduler


def _static_file(base: Path, *parts: str) -> FileResponse:
    target = base.joinpath(*parts).resolve()
    if not target.is_relative_to(base.resolve()) or not target.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(target)


@app.post("/api/scan", status_code=202)
def trigger_scan(request: Request, body: Optional[ScanRequest] = None) -> dict:
    full = body.full if body else False
    started = _scheduler(request).trigger(full=full)
    return {"ok": True, "started": started, "full": full}


@app.get("/api/scan")
def scan_status() -> dict:
    return {"scanning": is_scanning()}


@app.get("/api/library")
def get_library(x_user_id: Optional[str] = Header(default=None)) -> dict:
    return build_library(x_user_id or DEFAULT_USER, get_config())


@app.get("/api/comics/{comic_id}")
def get_comic(comic_id: str) -> dict:
    details = get_comic_details(comic_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Comic not found")
    return details


@app.get("/api/comics/{comic_id}/pages")
def get_pages(comic_id: str) -> dict:
    pages = list_pages(comic_id)
    if pages is None:
        raise HTTPException(status_code=404, detail="Comic not found")
    return {"id": comic_id, "pages": pages}


@app.get("/api/comics/{comic_id}/pages/{name:path}")
def get_page(comic_id: str, name: str) -> Response:
    page = read_page(comic_id, name)
    if page is None:
        raise HTTPException(status_code=404, detail="Page not found")
    data, content_type = page
    return Response(content=data, media_type=content_type)


@app.get("/thumbnails/{filename}")
def get_thumbnail(filename: str) -> FileResponse:
    return _static_file(get_config().thumbnails_dir, filename)


@app.get("/logos/{folder}/{filename}")
def get_logo(folder: str, filename: str) -> FileResponse:
    return _static_file(get_config().logos_dir, folder, filename)


def run_server(
    config: LongboxConfig,
    scheduler: ScanScheduler,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """Run the FastAPI app with Uvicorn."""
    import uvicorn

    app.state.scheduler = scheduler
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_config=None,
    )
