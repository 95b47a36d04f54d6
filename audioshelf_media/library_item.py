from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import ServerSettings
from .media import Book, MediaType, Podcast, media_from_record
from .metadata import author_display_name
from .models import (
    LibraryFile,
    MappingError,
    MediaProgress,
    PodcastEpisode,
    dump_record,
    expect_object,
    flag,
    integer,
    object_list,
    require,
    text,
)

BOOK = "book"
PODCAST = "podcast"


@dataclass(slots=True)
class LibraryItem:
    """One book or podcast as known to a library.

    ``media`` is a :class:`Book` or a :class:`Podcast` matching ``media_type``.
    ``user_media_progress`` is only present when progress was requested with
    the item.
    """

    id: str
    ino: str
    library_id: str
    folder_id: str
    path: str
    rel_path: str
    mtime_ms: int
    ctime_ms: int
    birthtime_ms: int
    added_at: int
    updated_at: int
    last_scan: Optional[int]
    scan_version: Optional[str]
    is_missing: bool
    is_invalid: bool
    media_type: str
    media: MediaType
    library_files: Optional[List[LibraryFile]] = None
    user_media_progress: Optional[MediaProgress] = None

    @property
    def title(self) -> str:
        return self.media.metadata.title

    @property
    def author_name(self) -> str:
        return author_display_name(self.media.metadata)

    def cover_uri(self, server: ServerSettings) -> str:
        if self.media.cover_path is None:
            return server.placeholder_cover
        return f"{server.address}/api/items/{self.id}/cover?token={server.token}"

    def check_has_tracks(self) -> bool:
        match self.media:
            case Podcast(num_episodes=count):
                return (count or 0) > 0
            case Book(num_tracks=count):
                return (count or 0) > 0
            case _:
                raise TypeError(f"Unsupported media type: {type(self.media).__name__}")

    @classmethod
    def from_record(cls, payload: object) -> "LibraryItem":
        data = expect_object(payload, "LibraryItem")
        media = media_from_record(require(data, "media", "LibraryItem"))
        media_type = text(data, "mediaType", "LibraryItem") or (PODCAST if isinstance(media, Podcast) else BOOK)
        if (media_type == PODCAST) != isinstance(media, Podcast):
            raise MappingError(
                f"LibraryItem: mediaType '{media_type}' does not match a {type(media).__name__} payload"
            )
        files = object_list(data, "libraryFiles", "LibraryItem")
        progress = data.get("userMediaProgress")
        return cls(
            id=text(data, "id", "LibraryItem", required=True),
            ino=text(data, "ino", "LibraryItem") or "",
            library_id=text(data, "libraryId", "LibraryItem") or "",
            folder_id=text(data, "folderId", "LibraryItem") or "",
            path=text(data, "path", "LibraryItem") or "",
            rel_path=text(data, "relPath", "LibraryItem") or "",
            mtime_ms=integer(data, "mtimeMs", "LibraryItem") or 0,
            ctime_ms=integer(data, "ctimeMs", "LibraryItem") or 0,
            birthtime_ms=integer(data, "birthtimeMs", "LibraryItem") or 0,
            added_at=integer(data, "addedAt", "LibraryItem") or 0,
            updated_at=integer(data, "updatedAt", "LibraryItem") or 0,
            last_scan=integer(data, "lastScan", "LibraryItem"),
            scan_version=text(data, "scanVersion", "LibraryItem"),
            is_missing=flag(data, "isMissing", "LibraryItem"),
            is_invalid=flag(data, "isInvalid", "LibraryItem"),
            media_type=media_type,
            media=media,
            library_files=[LibraryFile.from_record(item) for item in files] if files is not None else None,
            user_media_progress=MediaProgress.from_record(progress) if progress is not None else None,
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class LibraryItemWithEpisode:
    library_item: LibraryItem
    episode: PodcastEpisode


def load_library_item(payload: str | bytes) -> LibraryItem:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MappingError(f"LibraryItem: invalid JSON ({exc})") from exc
    return LibraryItem.from_record(data)


def dump_library_item(item: LibraryItem, *, indent: Optional[int] = None) -> str:
    return json.dumps(item.to_record(), indent=indent, ensure_ascii=False)
