"""
CBZ packaging with ComicInfo.xml metadata.

A folder of page images becomes a ``.cbz`` archive next to it. Pages are
written in natural order under zero-padded names so every reader shows them
in sequence, and a ComicInfo.xml sidecar describes the title, the series,
the chapter number and the page list.
"""

import re
import shutil
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union
import xml.etree.ElementTree as ET
import logging

from ..models.config import CBZConfig
from ..models.operations import EntryKind
from .fs_walker import EntryWalker
from .natural_sort import natural_sorted


logger = logging.getLogger(__name__)

COMIC_INFO_NAME = "ComicInfo.xml"

_XSI = "http://www.w3.org/2001/XMLSchema-instance"
_XSD = "http://www.w3.org/2001/XMLSchema"

_CHAPTER_PATTERNS = [
    re.compile(r'\b(?:chapter|chap|ch)\.?\s*(\d+(?:\.\d+)?)', re.IGNORECASE),
    re.compile(r'\b(?:volume|vol|v)\.?\s*(\d+(?:\.\d+)?)', re.IGNORECASE),
    re.compile(r'#\s*(\d+(?:\.\d+)?)'),
    re.compile(r'(\d+(?:\.\d+)?)\s*$'),
]


class CBZError(Exception):
    """Raised when a folder cannot be packed into a CBZ archive."""
    pass


@dataclass
class PackResult:
    """
    Result of packing one folder.

    Attributes:
        source: Folder that was packed
        archive: Archive path (None when packing failed)
        page_count: Number of pages written
        error: Failure message, if any
        cleanup_error: Why the source folder could not be removed after packing
    """
    source: Path
    archive: Optional[Path] = None
    page_count: int = 0
    error: Optional[str] = None
    cleanup_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PackTreeReport:
    """Results of packing every page folder under a root."""
    results: List[PackResult] = field(default_factory=list)

    @property
    def packed(self) -> List[PackResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[PackResult]:
        return [r for r in self.results if not r.ok]

    def __str__(self) -> str:
        return f"Packed {len(self.packed)} archive(s) | Failed {len(self.failed)}"


def collect_pages(
    folder: Union[str, Path],
    image_extensions: List[str],
    walker: Optional[EntryWalker] = None,
) -> List[Path]:
    """
    Get the page images of a folder in natural order.

    Args:
        folder: Folder containing the pages
        image_extensions: Extensions treated as pages
        walker: Entry walker used for listing

    Returns:
        Page paths, 'page2' before 'page10'
    """
    walker = walker or EntryWalker()
    entries = walker.list_entries(folder, kind=EntryKind.FILES, extensions=image_extensions)
    return natural_sorted([Path(entry.path) for entry in entries], key=lambda p: p.name)


def parse_chapter_number(name: str) -> Optional[str]:
    """
    Extract a chapter or volume number from a folder name.

    'Chapter 12', 'Ch.12', 'Vol 3', '#7' and a trailing number are recognised.
    Leading zeros are dropped, decimals like '10.5' are kept.
    """
    for pattern in _CHAPTER_PATTERNS:
        match = pattern.search(name)
        if match:
            number = match.group(1)
            if '.' in number:
                whole, _, fraction = number.partition('.')
                return f"{int(whole)}.{fraction}"
            return str(int(number))
    return None


def build_comic_info(
    title: str,
    pages: List[Path],
    series: Optional[str] = None,
    number: Optional[str] = None,
    language: Optional[str] = None,
) -> bytes:
    """
    Build a ComicInfo.xml document.

    Args:
        title: Issue title
        pages: Page files in reading order
        series: Series name
        number: Issue or chapter number
        language: ISO language code

    Returns:
        UTF-8 encoded XML with declaration
    """
    root = ET.Element("ComicInfo", {"xmlns:xsi": _XSI, "xmlns:xsd": _XSD})

    ET.SubElement(root, "Title").text = title
    if series:
        ET.SubElement(root, "Series").text = series
    if number is not None:
        ET.SubElement(root, "Number").text = number
    ET.SubElement(root, "PageCount").text = str(len(pages))
    if language:
        ET.SubElement(root, "LanguageISO").text = language

    pages_element = ET.SubElement(root, "Pages")
    for index, page in enumerate(pages):
        attributes = {"Image": str(index)}
        try:
            attributes["ImageSize"] = str(page.stat().st_size)
        except OSError:
            pass
        if index == 0:
            attributes["Type"] = "FrontCover"
        ET.SubElement(pages_element, "Page", attributes)

    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def pack_folder(
    folder: Union[str, Path],
    output: Optional[Union[str, Path]] = None,
    config: Optional[CBZConfig] = None,
    series: Optional[str] = None,
    walker: Optional[EntryWalker] = None,
) -> PackResult:
    """
    Pack a folder of page images into a CBZ archive.

    Args:
        folder: Folder containing the pages
        output: Archive path; defaults to '<folder>.cbz' next to the folder
        config: Packaging settings
        series: Series name written to ComicInfo.xml
        walker: Entry walker used for listing

    Returns:
        PackResult describing the archive

    Raises:
        CBZError: If the folder has no pages, the archive exists and
            overwriting is disabled, or the archive cannot be written
    """
    config = config or CBZConfig()
    source = Path(folder).expanduser().resolve()
    if not source.is_dir():
        raise CBZError(f"Not a directory: {source}")

    archive = Path(output).expanduser() if output else source.with_name(source.name + ".cbz")
    if archive.exists() and not config.overwrite:
        raise CBZError(f"Archive already exists: {archive}")

    pages = collect_pages(source, config.image_extensions, walker)
    if not pages:
        raise CBZError(f"No page images found in {source}")

    compression = zipfile.ZIP_DEFLATED if config.compress else zipfile.ZIP_STORED
    partial = archive.with_name(archive.name + ".part")
    try:
        archive.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(partial, "w", compression=compression) as zf:
            if config.write_comic_info:
                comic_info = build_comic_info(
                    title=source.name,
                    pages=pages,
                    series=series,
                    number=parse_chapter_number(source.name),
                    language=config.language,
                )
                zf.writestr(COMIC_INFO_NAME, comic_info)
            for index, page in enumerate(pages, 1):
                arcname = f"{index:0{config.page_padding}d}{page.suffix.lower()}"
                zf.write(page, arcname)
        partial.replace(archive)
    except (OSError, zipfile.BadZipFile) as e:
        partial.unlink(missing_ok=True)
        raise CBZError(f"Cannot write archive {archive}: {e}") from e

    logger.info(f"Packed {len(pages)} page(s) from {source.name} into {archive.name}")

    result = PackResult(source=source, archive=archive, page_count=len(pages))
    if config.delete_source:
        # The archive is complete; a folder that cannot be removed is kept
        try:
            shutil.rmtree(source)
        except OSError as e:
            logger.warning(f"Packed {source.name} but could not remove it: {e}")
            result.cleanup_error = str(e)
        else:
            logger.info(f"Removed source folder {source}")

    return result


def pack_tree(
    root: Union[str, Path],
    config: Optional[CBZConfig] = None,
    series: Optional[str] = None,
    walker: Optional[EntryWalker] = None,
) -> PackTreeReport:
    """
    Pack every immediate subfolder of root that contains pages.

    The series defaults to the name of root. Failures are recorded per
    folder and do not stop the run.
    """
    config = config or CBZConfig()
    walker = walker or EntryWalker()
    root_path = Path(root).expanduser().resolve()
    series = series or root_path.name

    report = PackTreeReport()
    for folder in natural_sorted(list(walker.iter_subdirectories(root_path)), key=lambda p: p.name):
        if not collect_pages(folder, config.image_extensions, walker):
            logger.debug(f"Skipping {folder.name}: no pages")
            continue
        try:
            result = pack_folder(folder, config=config, series=series, walker=walker)
        except CBZError as e:
            logger.warning(str(e))
            result = PackResult(source=folder, error=str(e))
        report.results.append(result)

    return report
