"""Data models for the bookmark sorting pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from attrs import Factory, define
from pydantic import BaseModel, Field, RootModel


@dataclass(frozen=True, slots=True)
class BookmarkRecord:
    """Bookmark entry captured from the XBEL export."""

    title: str
    url: str
    folder_path: str = ""
    url_normalized: str = ""


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Category picked by the classifier with its confidence in [0, 1]."""

    category: str
    confidence: float


@dataclass(frozen=True, slots=True)
class ClassifiedRecord:
    """Bookmark paired with its classification."""

    record: BookmarkRecord
    result: ClassificationResult

    @property
    def category(self) -> str:
        return self.result.category

    def to_model(self) -> ClassifiedEntryModel:
        """Convert the record into a serialisable pydantic model."""
        return ClassifiedEntryModel(
            title=self.record.title,
            url=self.record.url,
            url_normalized=self.record.url_normalized,
            folder_path=self.record.folder_path,
            category=self.result.category,
            confidence=self.result.confidence,
        )


@dataclass(slots=True)
class ParsedDocument:
    """Bookmarks and folder paths extracted from one XBEL document."""

    records: list[BookmarkRecord]
    folder_paths: list[str]


class ClassifiedEntryModel(BaseModel):
    """Pydantic model for a classified bookmark in the JSON report."""

    title: str
    url: str
    url_normalized: str = ""
    folder_path: str = ""
    category: str
    confidence: float = Field(ge=0.0, le=1.0)


class ClassifiedEntryListModel(RootModel[list[ClassifiedEntryModel]]):
    """Root list model for the JSON report (strict all-or-nothing validation)."""


@define(slots=True)
class XbelBookmark:
    """Bookmark node of an XBEL tree."""

    href: str
    title: str = ""


@define(slots=True)
class XbelFolder:
    """Folder node of an XBEL tree; the document root is an untitled folder."""

    title: str = ""
    children: list[XbelNode] = Factory(list)

    @property
    def bookmarks(self) -> list[XbelBookmark]:
        return [child for child in self.children if isinstance(child, XbelBookmark)]

    @property
    def folders(self) -> list[XbelFolder]:
        return [child for child in self.children if isinstance(child, XbelFolder)]

    def add_folder(self, title: str) -> XbelFolder:
        """Append a new child folder and return it."""
        folder = XbelFolder(title=title)
        self.children.append(folder)
        return folder

    def add_bookmark(self, href: str, title: str) -> None:
        """Append a bookmark to the folder."""
        self.children.append(XbelBookmark(href=href, title=title))


XbelNode = Union[XbelBookmark, XbelFolder]
