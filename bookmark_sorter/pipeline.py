"""Drive parse, dedupe, classification and XBEL rebuild for one document."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from .config import DEFAULT_CONCURRENCY
from .dedupe import dedupe_records
from .models import ClassifiedEntryListModel, ClassifiedRecord
from .parser import collect_folder_names, parse_xbel
from .validator import validate_sorted_output
from .xbel_writer import SortedItem, build_xbel

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from .models import BookmarkRecord, ClassificationResult, ParsedDocument

LOGGER = logging.getLogger(__name__)


class InputError(ValueError):
    """Raised when the input document cannot drive a classification run."""


class Classifier(Protocol):
    """Anything able to pick a category for one bookmark."""

    def classify(
        self, record: BookmarkRecord, categories: Sequence[str],
    ) -> ClassificationResult: ...


@dataclass(slots=True)
class SortResult:
    """Everything produced by a successful run."""

    document: str
    total_count: int
    unique_records: list[BookmarkRecord]
    classified: list[ClassifiedRecord]
    categories: list[str]


def resolve_categories(explicit: Iterable[str] | None, folder_paths: Iterable[str]) -> list[str]:
    """Return the explicit categories (cleaned) or derive them from folder paths."""
    if explicit is None:
        return collect_folder_names(folder_paths)
    cleaned = (name.strip() for name in explicit)
    return list(dict.fromkeys(name for name in cleaned if name))


def classify_all(
    records: Sequence[BookmarkRecord],
    categories: Sequence[str],
    classifier: Classifier,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[ClassifiedRecord]:
    """Classify ``records`` with at most ``concurrency`` calls in flight.

    Results follow the order of ``records``. A failure is raised only once
    every submitted task has finished.
    """
    allowed = list(categories)

    def _work(record: BookmarkRecord) -> ClassifiedRecord:
        LOGGER.debug("Classifying %r (%s)", record.title, record.url)
        result = classifier.classify(record, allowed)
        LOGGER.debug(
            "Classified %r (%s) as %s (confidence %.2f)",
            record.title,
            record.url,
            result.category,
            result.confidence,
        )
        return ClassifiedRecord(record=record, result=result)

    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as executor:
        futures = [executor.submit(_work, record) for record in records]
    # Leaving the executor block joins every worker.
    return [future.result() for future in futures]


def sort_bookmarks(
    xml_text: str,
    classifier: Classifier,
    categories: Iterable[str] | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> SortResult:
    """Run the whole pipeline on one XBEL document and return the sorted XBEL."""
    return sort_document(parse_xbel(xml_text), classifier, categories, concurrency)


def sort_document(
    parsed: ParsedDocument,
    classifier: Classifier,
    categories: Iterable[str] | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> SortResult:
    """Dedupe, classify and rebuild an already parsed document.

    Raises:
        InputError: No bookmarks in the document or no categories available.

    """
    if not parsed.records:
        msg = "No bookmarks found in XBEL document"
        raise InputError(msg)

    unique = dedupe_records(parsed.records)
    LOGGER.info("Loaded %d bookmarks (%d unique)", len(parsed.records), len(unique))

    resolved = resolve_categories(categories, parsed.folder_paths)
    if not resolved:
        msg = "No categories available; supply a category list or use an XBEL file with folders"
        raise InputError(msg)
    LOGGER.info("Classifying into %d categories with concurrency %d", len(resolved), concurrency)

    classified = classify_all(unique, resolved, classifier, concurrency)
    items = [
        SortedItem(title=entry.record.title, url=entry.record.url, category=entry.category)
        for entry in classified
    ]
    document = build_xbel(items, resolved)
    validate_sorted_output(unique, document, resolved)
    return SortResult(
        document=document,
        total_count=len(parsed.records),
        unique_records=unique,
        classified=classified,
        categories=resolved,
    )


def write_classified_json(classified: Iterable[ClassifiedRecord], path: Path) -> None:
    """Write a JSON report of every classified bookmark."""
    report = ClassifiedEntryListModel([entry.to_model() for entry in classified])
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    LOGGER.info("Wrote %d records to %s", len(report.root), path)

