"""Tests for ComicInfo.xml parsing and writing."""

import zipfile

from longbox.comicinfo import (
    ComicInfo,
    parse_comicinfo_xml,
    read_comicinfo_from_archive,
    write_comicinfo_to_cbz,
)


def test_parse_comicinfo_basic_fields():
    xml = b"""<?xml version="1.0"?>
    <ComicInfo>
      <Series>Saga</Series>
      <Number>1</Number>
      <Title>Chapter One</Title>
      <Publisher>Image</Publisher>
      <Year>2012</Year>
      <Writer>Brian K. Vaughan</Writer>
      <Unknown>ignored</Unknown>
    </ComicInfo>
    """
    info = parse_comicinfo_xml(xml)

    assert info.series == "Saga"
    assert info.number == "1"
    assert info.title == "Chapter One"
    assert info.publisher == "Image"
    assert info.year == "2012"
    assert info.writer == "Brian K. Vaughan"
    assert "Unknown" not in info.to_record()


def test_parse_comicinfo_is_case_and_namespace_tolerant():
    xml = b"""<ComicInfo xmlns="http://example.com/ci">
      <series>Y: The Last Man</series>
      <PUBLISHER>Vertigo</PUBLISHER>
    </ComicInfo>"""
    info = parse_comicinfo_xml(xml)

    assert info.series == "Y: The Last Man"
    assert info.publisher == "Vertigo"


def test_parse_comicinfo_invalid_xml_gives_empty_record():
    info = parse_comicinfo_xml(b"<ComicInfo><Series>broken")
    assert info.to_record() == {}


def test_values_are_kept_as_strings():
    info = parse_comicinfo_xml(b"<ComicInfo><Number>007</Number><Year>1999</Year></ComicInfo>")
    assert info.to_record() == {"Number": "007", "Year": "1999"}


def test_read_comicinfo_from_archive(tmp_path, make_cbz):
    cbz = make_cbz(tmp_path / "issue.cbz", info=ComicInfo(series="Saga", publisher="Image"))
    info = read_comicinfo_from_archive(cbz)
    assert info.series == "Saga"
    assert info.publisher == "Image"


def test_read_comicinfo_absent_or_corrupt(tmp_path, make_cbz):
    plain = make_cbz(tmp_path / "plain.cbz")
    assert read_comicinfo_from_archive(plain).to_record() == {}

    broken = tmp_path / "broken.cbz"
    broken.write_bytes(b"not a zip")
    assert read_comicinfo_from_archive(broken).to_record() == {}


def test_write_comicinfo_replaces_existing(tmp_path, make_cbz):
    cbz = make_cbz(tmp_path / "issue.cbz", pages=3, info=ComicInfo(series="Old"))

    assert write_comicinfo_to_cbz(cbz, ComicInfo(series="New", number="2"))

    with zipfile.ZipFile(cbz) as zf:
        names = zf.namelist()
    assert names.count("ComicInfo.xml") == 1
    assert len([n for n in names if n.endswith(".png")]) == 3
    assert read_comicinfo_from_archive(cbz).to_record() == {"Series": "New", "Number": "2"}
    assert not (tmp_path / "issue.cbz.tmp").exists()


def test_write_comicinfo_empty_record_is_noop(tmp_path, make_cbz):
    cbz = make_cbz(tmp_path / "issue.cbz", info=ComicInfo(series="Keep"))
    assert write_comicinfo_to_cbz(cbz, ComicInfo()) is False
    assert read_comicinfo_from_archive(cbz).series == "Keep"
