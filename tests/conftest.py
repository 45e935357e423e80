"""Shared fixtures: temp catalog database, library layout and archive builders."""

import io
import os
import zipfile
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from longbox.comicinfo import ComicInfo, build_comicinfo_xml
from longbox.config import ConverterConfig, LibraryConfig, LongboxConfig
from longbox.converter import CommandResult
from longbox.database import init_db, make_engine


def _png_bytes(size=(40, 60), color="red", mode="RGB") -> bytes:
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class FakeExtractor:
    """Stands in for unrar: the test .cbr files are really zips, so unzip them."""

    def __init__(self, returncode: int = 0, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        self.calls = []

    def run(self, args, cwd, timeout):
        self.calls.append(list(args))
        if self.returncode != 0:
            return CommandResult(self.returncode, "", self.stderr)
        archive, dest = Path(args[1]), Path(args[2])
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(dest)
        return CommandResult(0, "ok", "")


@pytest.fixture
def db_engine(tmp_path, monkeypatch):
    """Point the module-level engine at a fresh SQLite file."""
    engine = make_engine(tmp_path / "library.db")
    monkeypatch.setattr("longbox.database.engine", engine, raising=True)
    init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def library_root(tmp_path) -> Path:
    root = tmp_path / "comics"
    root.mkdir()
    return root


@pytest.fixture
def config(tmp_path, library_root) -> LongboxConfig:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return LongboxConfig(
        library=LibraryConfig(roots=(library_root,), conversion_root=library_root),
        converter=ConverterConfig(command="fake-extract {archive} {dest}", timeout_seconds=5),
        data_dir=data_dir,
    )


@pytest.fixture
def fake_runner() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def png_bytes():
    return _png_bytes


@pytest.fixture
def make_cbz():
    """Factory: write a comic archive with `pages` PNG pages and optional ComicInfo."""

    def _make(
        path: Path,
        pages: int = 2,
        info: Optional[ComicInfo] = None,
        extra: Optional[dict] = None,
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for i in range(1, pages + 1):
                zf.writestr(f"page{i}.png", _png_bytes(color=(10 * i % 255, 0, 0)))
            if info is not None:
                zf.writestr("ComicInfo.xml", build_comicinfo_xml(info))
            for name, data in (extra or {}).items():
                zf.writestr(name, data)
        return path

    return _make


@pytest.fixture
def bump_mtime():
    """Push a directory's mtime forward so change detection never depends on clock granularity."""

    def _bump(directory: Path, seconds: int = 5) -> None:
        st = directory.stat()
        os.utime(directory, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))

    return _bump


@pytest.fixture
def failing_runner() -> FakeExtractor:
    return FakeExtractor(returncode=3, stderr="checksum error")
