"""Sorted output validation utilities."""

from __future__ import annotations

import collections
import logging
from typing import TYPE_CHECKING

from .parser import parse_xbel

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Sequence

    from .models import BookmarkRecord

LOGGER = logging.getLogger(__name__)


def validate_sorted_output(
    unique_records: Iterable[BookmarkRecord],
    xbel_text: str,
    categories: Sequence[str],
) -> None:
    """Check that the sorted document holds every unique bookmark exactly once.

    Raises:
        ValueError: Bookmarks are missing, duplicated or filed outside a category folder.

    """
    expected = list(unique_records)
    sorted_records = parse_xbel(xbel_text).records
    _assert_counts(expected, sorted_records)
    _assert_url_multiset(expected, sorted_records)
    _assert_categories(sorted_records, categories)
    LOGGER.info("Validation successful: all %d bookmarks accounted for", len(expected))


def _assert_counts(expected: list[BookmarkRecord], produced: list[BookmarkRecord]) -> None:
    if len(expected) != len(produced):
        msg = (
            "Mismatch between unique and sorted bookmark counts: "
            f"{len(expected)} vs {len(produced)}"
        )
        raise ValueError(msg)


def _assert_url_multiset(expected: list[BookmarkRecord], produced: list[BookmarkRecord]) -> None:
    expected_urls = collections.Counter(r.url for r in expected)
    produced_urls = collections.Counter(r.url for r in produced)
    if expected_urls != produced_urls:
        missing = expected_urls - produced_urls
        extras = produced_urls - expected_urls
        msg = "URL mismatch detected in sorted output"
        raise ValueError(msg, {"missing": dict(missing), "extra": dict(extras)})


def _assert_categories(produced: list[BookmarkRecord], categories: Sequence[str]) -> None:
    allowed = set(categories)
    stray = [r.url for r in produced if r.folder_path not in allowed]
    if stray:
        msg = f"Found {len(stray)} bookmarks outside a known category folder"
        raise ValueError(msg, stray)
