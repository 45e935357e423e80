"""ComicInfo.xml parsing and writing for Longbox.

Reads ComicInfo.xml from inside CBZ archives into a `ComicInfo` model and
can write one back. Values are kept as the strings found in the XML so
recognised fields round-trip unchanged.
"""

from __future__ import annotations

import os
import xml.etree.ElementTree as ET
import zipfile
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .archive import open_archive
from .logging_config import get_logger

logger = get_logger(__name__)

COMICINFO_NAME = "ComicInfo.xml"


class ComicInfo(BaseModel):
    """Recognised ComicInfo fields (all optional). Aliases are the XML tag names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = Field(default=None, alias="Title")
    series: Optional[str] = Field(default=None, alias="Series")
    number: Optional[str] = Field(default=None, alias="Number")
    count: Optional[str] = Field(default=None, alias="Count")
    volume: Optional[str] = Field(default=None, alias="Volume")
    summary: Optional[str] = Field(default=None, alias="Summary")
    notes: Optional[str] = Field(default=None, alias="Notes")
    year: Optional[str] = Field(default=None, alias="Year")
    month: Optional[str] = Field(default=None, alias="Month")
    day: Optional[str] = Field(default=None, alias="Day")
    writer: Optional[str] = Field(default=None, alias="Writer")
    penciller: Optional[str] = Field(default=None, alias="Penciller")
    inker: Optional[str] = Field(default=None, alias="Inker")
    colorist: Optional[str] = Field(default=None, alias="Colorist")
    letterer: Optional[str] = Field(default=None, alias="Letterer")
    cover_artist: Optional[str] = Field(default=None, alias="CoverArtist")
    editor: Optional[str] = Field(default=None, alias="Editor")
    publisher: Optional[str] = Field(default=None, alias="Publisher")
    genre: Optional[str] = Field(default=None, alias="Genre")
    tags: Optional[str] = Field(default=None, alias="Tags")
    web: Optional[str] = Field(default=None, alias="Web")
    page_count: Optional[str] = Field(default=None, alias="PageCount")
    language_iso: Optional[str] = Field(default=None, alias="LanguageISO")
    format: Optional[str] = Field(default=None, alias="Format")
    black_and_white: Optional[str] = Field(default=None, alias="BlackAndWhite")
    age_rating: Optional[str] = Field(default=None, alias="AgeRating")
    characters: Optional[str] = Field(default=None, alias="Characters")
    teams: Optional[str] = Field(default=None, alias="Teams")
    locations: Optional[str] = Field(default=None, alias="Locations")
    scan_information: Optional[str] = Field(default=None, alias="ScanInformation")
    series_group: Optional[str] = Field(default=None, alias="SeriesGroup")
    story_arc: Optional[str] = Field(default=None, alias="StoryArc")
    cover_date: Optional[str] = Field(default=None, alias="CoverDate")
    store_date: Optional[str] = Field(default=None, alias="StoreDate")

    def to_record(self) -> dict[str, str]:
        """Tag-keyed dict of the fields that are set (what the catalog stores)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# lowercased tag -> canonical tag, built from the model aliases
TAG_MAP = {
    field.alias.lower(): field.alias
    for field in ComicInfo.model_fields.values()
}


def _text(elem: ET.Element) -> Optional[str]:
    if elem.text is None:
        return None
    t = elem.text.strip()
    return t or None


def _local_name(tag: str) -> str:
    """Return tag without namespace (e.g. '{http://...}Issue' -> 'issue')."""
    return tag.split("}")[-1].lower() if "}" in tag else tag.lower()


def parse_comicinfo_xml(xml_bytes: bytes) -> ComicInfo:
    """Parse ComicInfo.xml content. Unknown tags are ignored; bad XML gives an empty model."""
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError:
        return ComicInfo()

    raw: dict[str, str] = {}
    for elem in root:
        if not isinstance(elem.tag, str):
            continue
        tag = TAG_MAP.get(_local_name(elem.tag))
        if tag is None or tag in raw:
            continue
        text = _text(elem)
        if text is not None:
            raw[tag] = text

    return ComicInfo.model_validate(raw)


def read_comicinfo_from_archive(archive_path: Path) -> ComicInfo:
    """Read ComicInfo.xml from a CBZ archive. Never raises; empty model when absent."""
    try:
        with open_archive(archive_path) as archive:
            comicinfo_name = next(
                (
                    n for n in archive.list_names()
                    if Path(n).name.lower() == COMICINFO_NAME.lower()
                ),
                None,
            )
            if comicinfo_name is None:
                return ComicInfo()
            raw = archive.read(comicinfo_name)
    except Exception as exc:
        logger.debug(f"No readable ComicInfo in {archive_path.name}: {exc}")
        return ComicInfo()

    if not raw.strip():
        return ComicInfo()
    return parse_comicinfo_xml(raw)


def build_comicinfo_xml(info: ComicInfo) -> bytes:
    """Serialise the set fields of `info` as a ComicInfo.xml document."""
    root = ET.Element("ComicInfo")
    for tag, value in info.to_record().items():
        ET.SubElement(root, tag).text = value
    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def write_comicinfo_to_cbz(cbz_path: Path, info: ComicInfo) -> bool:
    """Replace (or add) ComicInfo.xml inside a CBZ.

    The archive is rewritten to a temp file and renamed over the original.
    Returns False when `info` carries no fields (nothing is written).
    """
    if not info.to_record():
        logger.info(f"No valid metadata for {cbz_path.name}; skipping save.")
        return False

    xml_bytes = build_comicinfo_xml(info)
    tmp_path = cbz_path.with_name(cbz_path.name + ".tmp")

    try:
        with zipfile.ZipFile(cbz_path, "r") as src, zipfile.ZipFile(tmp_path, "w") as dst:
            for item in src.infolist():
                if Path(item.filename).name.lower() == COMICINFO_NAME.lower():
                    continue
                dst.writestr(item, src.read(item.filename))
            dst.writestr(COMICINFO_NAME, xml_bytes, compress_type=zipfile.ZIP_DEFLATED)
        os.replace(tmp_path, cbz_path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info(f"✓ Saved ComicInfo.xml for {cbz_path.name}")
    return True
