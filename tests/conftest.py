"""Shared pytest fixtures for bookmark sorter tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

SAMPLE_XBEL = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE xbel PUBLIC "+//IDN python.org//DTD XML Bookmark Exchange Language 1.0//EN//XML" "http://pyxml.sourceforge.net/topics/dtds/xbel.dtd">
<xbel version="1.0">
  <bookmark href="https://root.example/">
    <title>Root Link</title>
  </bookmark>
  <folder>
    <title>Work</title>
    <bookmark href="https://work.example/a">
      <title>Work A</title>
    </bookmark>
    <folder>
      <title>Dev</title>
      <bookmark HREF="https://dev.example/?b=2&amp;a=1">
        <title>Dev Docs</title>
      </bookmark>
      <bookmark href="https://notitle.example/x"/>
    </folder>
    <folder>
      <title>Empty</title>
    </folder>
  </folder>
  <folder>
    <bookmark href="https://untitled-folder.example">
      <title>Loose</title>
    </bookmark>
  </folder>
  <bookmark>
    <title>No link</title>
  </bookmark>
</xbel>
"""

DUPLICATE_XBEL = """<?xml version="1.0" encoding="UTF-8"?>
<xbel version="1.0">
  <folder>
    <title>A</title>
    <bookmark href="https://one.example/">
      <title>One</title>
    </bookmark>
    <bookmark href="https://two.example/page">
      <title>Two</title>
    </bookmark>
  </folder>
  <folder>
    <title>B</title>
    <bookmark href="HTTPS://ONE.example:443">
      <title>One again</title>
    </bookmark>
  </folder>
</xbel>
"""


@pytest.fixture
def sample_xbel() -> str:
    """A small XBEL document covering nesting, untitled folders and missing links."""
    return SAMPLE_XBEL


@pytest.fixture
def duplicate_xbel() -> str:
    """Three bookmarks in folders A and B, one URL duplicated across folders."""
    return DUPLICATE_XBEL


@pytest.fixture
def sample_xbel_file(tmp_path: Path) -> Path:
    """Write the sample document to disk."""
    p = tmp_path / "bookmarks.xbel"
    p.write_text(SAMPLE_XBEL, encoding="utf-8")
    return p
