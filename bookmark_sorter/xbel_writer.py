"""Functions for rendering sorted bookmarks as XBEL."""

from __future__ import annotations

import html
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .models import XbelBookmark, XbelFolder

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Sequence
    from pathlib import Path

XBEL_HEADER = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE xbel PUBLIC "+//IDN python.org//DTD XML Bookmark Exchange Language 1.0//EN//XML" \
"http://pyxml.sourceforge.net/topics/dtds/xbel.dtd">
"""

INDENT = "  "


@dataclass(frozen=True, slots=True)
class SortedItem:
    """Bookmark ready to be placed in a category folder."""

    title: str
    url: str
    category: str


def build_tree(items: Iterable[SortedItem], categories: Sequence[str]) -> XbelFolder:
    """Group items into one folder per category, in ``categories`` order.

    Categories without items are left out. With no categories, folders follow
    the order in which categories first appear among the items.
    """
    grouped: dict[str, list[SortedItem]] = {}
    for item in items:
        grouped.setdefault(item.category, []).append(item)

    root = XbelFolder(title="")
    for category in categories or list(grouped):
        members = grouped.get(category)
        if not members:
            continue
        folder = root.add_folder(category)
        for item in members:
            folder.add_bookmark(item.url, item.title)
    return root


def render_xbel(root: XbelFolder) -> str:
    """Render the tree as an indented XBEL document."""
    lines: list[str] = [XBEL_HEADER.strip(), '<xbel version="1.0">']
    _render_children(root, lines, 1)
    lines.append("</xbel>")
    return "\n".join(lines) + "\n"


def _render_children(folder: XbelFolder, output: list[str], depth: int) -> None:
    indent = INDENT * depth
    for child in folder.children:
        if isinstance(child, XbelBookmark):
            href = _escape_attribute(child.href)
            output.append(f'{indent}<bookmark href="{href}">')
            output.append(f"{indent}{INDENT}<title>{_escape_text(child.title)}</title>")
            output.append(f"{indent}</bookmark>")
            continue
        output.append(f"{indent}<folder>")
        output.append(f"{indent}{INDENT}<title>{_escape_text(child.title)}</title>")
        _render_children(child, output, depth + 1)
        output.append(f"{indent}</folder>")


def _escape_text(value: str) -> str:
    return html.escape(value, quote=False).replace("\r", "&#13;")


def _escape_attribute(value: str) -> str:
    # Parsers turn raw whitespace in attribute values into spaces.
    escaped = html.escape(value, quote=True)
    return escaped.replace("\t", "&#9;").replace("\n", "&#10;").replace("\r", "&#13;")


def build_xbel(items: Iterable[SortedItem], categories: Sequence[str]) -> str:
    """Build the sorted XBEL document text."""
    return render_xbel(build_tree(items, categories))


def write_xbel(xbel_text: str, output_path: Path | None) -> None:
    """Write the document to ``output_path`` or to stdout when no path is given."""
    if output_path is None:
        sys.stdout.write(xbel_text)
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(xbel_text, encoding="utf-8")
