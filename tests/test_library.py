"""Tests for the library tree and per-user progress overlay."""

from datetime import datetime, timezone

from PIL import Image
from sqlmodel import Session

from longbox.database import get_engine
from longbox.library import build_library, logo_needs_background, resolve_publisher_logo
from longbox.models import UserComicStatus
from longbox.repository import Repository
from longbox.utils import create_id


def _add_comic(path, publisher="Image", series="Saga", total_pages=10, metadata=None):
    with Session(get_engine()) as session:
        repo = Repository(session)
        repo.upsert_comic(
            comic_id=create_id(path),
            path=path,
            name=path.name,
            publisher=publisher,
            series=series,
            thumbnail_path=f"{create_id(path)}.jpg",
            comic_metadata=metadata or {},
            total_pages=total_pages,
            updated_at=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
            converted_at=None,
        )
        repo.commit()
    return create_id(path)


def _set_progress(user_id, comic_id, page, total):
    with Session(get_engine()) as session:
        session.add(UserComicStatus(user_id=user_id, comic_id=comic_id, last_read_page=page, total_pages=total))
        session.commit()


def test_tree_groups_by_root_publisher_series(db_engine, config, library_root):
    _add_comic(library_root / "Image" / "saga-010.cbz", metadata={"Number": "10", "Series": "Saga", "Writer": "BKV"})
    _add_comic(library_root / "Image" / "saga-002.cbz")
    _add_comic(library_root / "Marvel" / "xmen-001.cbz", publisher="Marvel", series="X-Men")

    lib = build_library("alice", config)

    root = lib[str(library_root)]
    assert set(root["publishers"]) == {"Image", "Marvel"}
    saga = root["publishers"]["Image"]["series"]["Saga"]
    assert [c["name"] for c in saga] == ["saga-002.cbz", "saga-010.cbz"]
    entry = saga[1]
    assert entry["metadata"] == {"Number": "10", "Series": "Saga", "Title": ""}
    assert entry["updatedAt"] == "2024-01-01T12:00:00+00:00"
    assert entry["convertedAt"] is None
    assert entry["thumbnailPath"] == f"{entry['id']}.jpg"


def test_progress_overlay_is_per_user(db_engine, config, library_root):
    read = _add_comic(library_root / "a.cbz", total_pages=20)
    unread = _add_comic(library_root / "b.cbz", total_pages=12)
    _set_progress("alice", read, 7, 20)
    _set_progress("bob", unread, 3, 12)

    entries = {
        c["id"]: c
        for c in build_library("alice", config)[str(library_root)]["publishers"]["Image"]["series"]["Saga"]
    }

    assert entries[read]["progress"] == {"lastReadPage": 7, "totalPages": 20}
    # bob's progress never leaks into alice's tree
    assert entries[unread]["progress"] == {"lastReadPage": 0, "totalPages": 12}


def test_empty_roots_are_present(db_engine, config, tmp_path, library_root):
    other = tmp_path / "manga"
    other.mkdir()
    config.library.roots = (library_root, other)

    lib = build_library("alice", config)

    assert lib == {str(library_root): {"publishers": {}}, str(other): {"publishers": {}}}


def test_comic_outside_roots_goes_to_fallback(db_engine, config, tmp_path):
    _add_comic(tmp_path / "removed-root" / "x.cbz")

    lib = build_library("alice", config)

    assert "Library" in lib
    assert "Image" in lib["Library"]["publishers"]


def test_nested_roots_use_deepest(db_engine, config, library_root):
    manga = library_root / "manga"
    config.library.roots = (library_root, manga)
    _add_comic(manga / "op" / "op-001.cbz", publisher="Shueisha", series="One Piece")

    lib = build_library("alice", config)

    assert "Shueisha" in lib[str(manga)]["publishers"]
    assert lib[str(library_root)]["publishers"] == {}


def test_visibility_predicate_filters_comics(db_engine, config, library_root):
    _add_comic(library_root / "public.cbz")
    _add_comic(library_root / "private.cbz")

    lib = build_library("alice", config, is_visible=lambda comic: comic.name != "private.cbz")

    names = [c["name"] for c in lib[str(library_root)]["publishers"]["Image"]["series"]["Saga"]]
    assert names == ["public.cbz"]


def test_publisher_logo_lookup(db_engine, config, library_root):
    logo_dir = config.logos_dir / "Image"
    logo_dir.mkdir(parents=True)
    Image.new("RGBA", (10, 10), (255, 0, 0, 0)).save(logo_dir / "logo.png")
    _add_comic(library_root / "a.cbz")

    publisher = build_library("alice", config)[str(library_root)]["publishers"]["Image"]

    assert publisher["logoUrl"] == "logos/Image/logo.png"
    assert publisher["logoNeedsBackground"] is True


def test_logo_without_transparency(config):
    logo_dir = config.logos_dir / "DC Comics"
    logo_dir.mkdir(parents=True)
    Image.new("RGB", (10, 10), "white").save(logo_dir / "dc.jpg")
    Image.new("RGBA", (10, 10), (0, 0, 255, 255)).save(logo_dir / "solid.png")

    info = resolve_publisher_logo("DC Comics", config)

    # No logo.* file: the first image by name is used
    assert info == {"logoUrl": "logos/DC%20Comics/dc.jpg", "logoNeedsBackground": False}
    assert logo_needs_background(logo_dir / "solid.png") is False


def test_missing_logo(config):
    assert resolve_publisher_logo("Nobody", config) == {"logoUrl": None, "logoNeedsBackground": False}
    assert not (config.logos_dir / "Nobody").exists()
