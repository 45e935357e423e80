"""Tests for comic detail and page access."""

from longbox import scanner
from longbox.comicinfo import ComicInfo
from longbox.pages import content_type_for, get_comic_details, list_pages, read_page
from longbox.utils import create_id


def test_pages_follow_reading_order(db_engine, config, library_root, make_cbz, png_bytes):
    cbz = make_cbz(
        library_root / "issue.cbz",
        pages=0,
        extra={"p10.png": png_bytes(), "p2.png": png_bytes(), "p1.png": png_bytes()},
        info=ComicInfo(series="Saga", summary="Long summary"),
    )
    scanner.scan_library(config)
    comic_id = create_id(cbz)

    assert list_pages(comic_id) == ["p1.png", "p2.png", "p10.png"]

    data, content_type = read_page(comic_id, "p2.png")
    assert content_type == "image/png"
    assert data.startswith(b"\x89PNG")

    details = get_comic_details(comic_id)
    assert details["totalPages"] == 3
    assert details["metadata"] == {"Series": "Saga", "Summary": "Long summary"}


def test_read_page_only_serves_page_entries(db_engine, config, library_root, make_cbz):
    cbz = make_cbz(library_root / "issue.cbz", info=ComicInfo(series="Saga"))
    scanner.scan_library(config)

    assert read_page(create_id(cbz), "ComicInfo.xml") is None
    assert read_page(create_id(cbz), "../../etc/passwd") is None


def test_unknown_comic(db_engine):
    assert get_comic_details("0" * 40) is None
    assert list_pages("0" * 40) is None
    assert read_page("0" * 40, "p1.png") is None


def test_content_type_for():
    assert content_type_for("a.JPG") == "image/jpeg"
    assert content_type_for("a.webp") == "image/webp"
