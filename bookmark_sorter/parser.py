"""Parse an XBEL bookmark export into structured records."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup, Tag

from .models import BookmarkRecord, ParsedDocument, XbelFolder

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable
    from pathlib import Path

LOGGER = logging.getLogger(__name__)


def parse_xbel_file(xbel_path: Path) -> ParsedDocument:
    """Parse an XBEL file from disk."""
    LOGGER.debug("Parsing bookmark export from %s", xbel_path)
    return parse_xbel(xbel_path.read_text(encoding="utf-8"))


def parse_xbel(xml_text: str) -> ParsedDocument:
    """Flatten an XBEL document into bookmark records and folder paths.

    Folders are walked depth first; inside a folder its bookmarks come before
    its subfolders. Every titled folder path is reported, including folders
    that hold no bookmarks.
    """
    root = read_xbel_tree(xml_text)
    records: list[BookmarkRecord] = []
    folder_paths: list[str] = []

    _collect_bookmarks(root, [], records)
    for folder in root.folders:
        _walk_folder(folder, [], records, folder_paths)

    LOGGER.info(
        "Extracted %d bookmark entries across %d folders", len(records), len(folder_paths),
    )
    return ParsedDocument(records=records, folder_paths=folder_paths)


def read_xbel_tree(xml_text: str) -> XbelFolder:
    """Read XBEL text into a tree of :class:`XbelFolder` / ``XbelBookmark`` nodes."""
    soup = BeautifulSoup(xml_text, "xml")
    xbel = soup.find("xbel")
    container: Tag | BeautifulSoup = xbel if isinstance(xbel, Tag) else soup
    root = XbelFolder(title="")
    _read_children(container, root)
    return root


def collect_folder_names(paths: Iterable[str]) -> list[str]:
    """Return every distinct non-empty path segment (stripped) in first-seen order."""
    names: dict[str, None] = {}
    for path in paths:
        for raw in path.split("/"):
            segment = raw.strip()
            if segment:
                names.setdefault(segment, None)
    return list(names)


def _read_children(element: Tag | BeautifulSoup, node: XbelFolder) -> None:
    for child in element.find_all(["folder", "bookmark"], recursive=False):
        if child.name == "folder":
            _read_children(child, node.add_folder(_read_title(child)))
            continue
        href = _read_href(child)
        if href is None:
            LOGGER.debug("Skipping bookmark without href")
            continue
        node.add_bookmark(href, _read_title(child))


def _read_title(element: Tag) -> str:
    title = element.find("title", recursive=False)
    if title is None:
        return ""
    return title.get_text(strip=True)


def _read_href(element: Tag) -> str | None:
    for name, value in element.attrs.items():
        if name.lower() != "href" or not isinstance(value, str):
            continue
        href = value.strip()
        if href:
            return href
    return None


def _walk_folder(
    folder: XbelFolder,
    parent_segments: list[str],
    records: list[BookmarkRecord],
    folder_paths: list[str],
) -> None:
    segments = [*parent_segments, folder.title] if folder.title else list(parent_segments)
    if segments:
        folder_paths.append("/".join(segments))
    _collect_bookmarks(folder, segments, records)
    for child in folder.folders:
        _walk_folder(child, segments, records, folder_paths)


def _collect_bookmarks(
    folder: XbelFolder, segments: list[str], records: list[BookmarkRecord],
) -> None:
    path = "/".join(segments)
    records.extend(
        BookmarkRecord(title=bookmark.title or bookmark.href, url=bookmark.href, folder_path=path)
        for bookmark in folder.bookmarks
    )
