"""Drop duplicate bookmarks that share a normalised URL."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from .url import normalize_url

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable

    from .models import BookmarkRecord

LOGGER = logging.getLogger(__name__)


def dedupe_records(records: Iterable[BookmarkRecord]) -> list[BookmarkRecord]:
    """Keep the first record seen per normalised URL, in input order.

    Records whose URL cannot be normalised are dropped. Returned records carry
    their ``url_normalized`` key.
    """
    unique: dict[str, BookmarkRecord] = {}
    for record in records:
        normalized = normalize_url(record.url)
        if not normalized:
            LOGGER.debug("Dropping bookmark with unusable URL %r", record.url)
            continue
        if normalized in unique:
            continue
        unique[normalized] = dataclasses.replace(record, url_normalized=normalized)
    return list(unique.values())
