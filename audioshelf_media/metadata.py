from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .models import (
    Author,
    dump_record,
    expect_object,
    flag,
    object_list,
    string_list,
    text,
)

UNKNOWN_AUTHOR = "Unknown"

# Keys only a podcast metadata payload carries, and keys only a book one does.
PODCAST_METADATA_KEYS = frozenset({"feedUrl", "author"})
BOOK_METADATA_KEYS = frozenset(
    {
        "subtitle",
        "authors",
        "narrators",
        "publishedYear",
        "publishedDate",
        "publisher",
        "description",
        "isbn",
        "asin",
        "language",
        "explicit",
        "authorName",
        "authorNameLF",
        "narratorName",
        "seriesName",
    }
)


@dataclass(slots=True)
class BookMetadata:
    title: str
    subtitle: Optional[str] = None
    authors: Optional[List[Author]] = None
    narrators: Optional[List[str]] = None
    genres: List[str] = field(default_factory=list)
    published_year: Optional[str] = None
    published_date: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    isbn: Optional[str] = None
    asin: Optional[str] = None
    language: Optional[str] = None
    explicit: bool = False
    # Display names precomputed by the server for expanded payloads.
    author_name: Optional[str] = None
    author_name_lf: Optional[str] = field(default=None, metadata={"key": "authorNameLF"})
    narrator_name: Optional[str] = None
    series_name: Optional[str] = None

    @classmethod
    def from_record(cls, payload: object) -> "BookMetadata":
        data = expect_object(payload, "BookMetadata")
        authors = object_list(data, "authors", "BookMetadata")
        return cls(
            title=text(data, "title", "BookMetadata", required=True),
            subtitle=text(data, "subtitle", "BookMetadata"),
            authors=[Author.from_record(item) for item in authors] if authors is not None else None,
            narrators=string_list(data, "narrators", "BookMetadata"),
            genres=string_list(data, "genres", "BookMetadata") or [],
            published_year=text(data, "publishedYear", "BookMetadata"),
            published_date=text(data, "publishedDate", "BookMetadata"),
            publisher=text(data, "publisher", "BookMetadata"),
            description=text(data, "description", "BookMetadata"),
            isbn=text(data, "isbn", "BookMetadata"),
            asin=text(data, "asin", "BookMetadata"),
            language=text(data, "language", "BookMetadata"),
            explicit=flag(data, "explicit", "BookMetadata"),
            author_name=text(data, "authorName", "BookMetadata"),
            author_name_lf=text(data, "authorNameLF", "BookMetadata"),
            narrator_name=text(data, "narratorName", "BookMetadata"),
            series_name=text(data, "seriesName", "BookMetadata"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class PodcastMetadata:
    title: str
    author: Optional[str] = None
    feed_url: Optional[str] = None
    genres: List[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, payload: object) -> "PodcastMetadata":
        data = expect_object(payload, "PodcastMetadata")
        return cls(
            title=text(data, "title", "PodcastMetadata", required=True),
            author=text(data, "author", "PodcastMetadata"),
            feed_url=text(data, "feedUrl", "PodcastMetadata"),
            genres=string_list(data, "genres", "PodcastMetadata") or [],
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


MediaTypeMetadata = Union[BookMetadata, PodcastMetadata]


def is_podcast_metadata_shape(payload: Mapping[str, Any]) -> bool:
    keys = set(payload)
    return bool(keys & PODCAST_METADATA_KEYS) and not keys & BOOK_METADATA_KEYS


def metadata_from_record(payload: object) -> MediaTypeMetadata:
    """Map a metadata payload onto the variant its keys describe.

    There is no type tag: a payload carrying ``feedUrl`` or ``author`` and none of
    the book-only keys is podcast metadata, anything else is book metadata.
    """
    data = expect_object(payload, "MediaTypeMetadata")
    if is_podcast_metadata_shape(data):
        return PodcastMetadata.from_record(data)
    return BookMetadata.from_record(data)


def author_display_name(metadata: MediaTypeMetadata) -> str:
    match metadata:
        case BookMetadata(author_name=name):
            return name or UNKNOWN_AUTHOR
        case PodcastMetadata(author=name):
            return name or UNKNOWN_AUTHOR
        case _:
            raise TypeError(f"Unsupported metadata type: {type(metadata).__name__}")
