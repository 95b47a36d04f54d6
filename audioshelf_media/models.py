from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Optional


class MappingError(ValueError):
    """Raised when a JSON payload cannot be mapped onto a known record shape."""


# Record helpers shared by every entity. JSON keys are camelCase, attributes are
# snake_case; a field can pin its key through ``field(metadata={"key": ...})``.


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def dump_record(obj: Any) -> Dict[str, Any]:
    return {
        fld.metadata.get("key") or _camel(fld.name): _dump(getattr(obj, fld.name))
        for fld in fields(obj)
    }


def _dump(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return dump_record(value)
    if isinstance(value, (list, tuple)):
        return [_dump(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _dump(item) for key, item in value.items()}
    return value


def expect_object(payload: object, record: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise MappingError(f"{record}: expected a JSON object, got {type(payload).__name__}")
    return payload


def require(payload: Mapping[str, Any], key: str, record: str) -> Any:
    value = payload.get(key)
    if value is None:
        raise MappingError(f"{record}: missing required field '{key}'")
    return value


def text(payload: Mapping[str, Any], key: str, record: str, *, required: bool = False) -> Optional[str]:
    value = require(payload, key, record) if required else payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MappingError(f"{record}: field '{key}' must be a string")
    return value


def number(payload: Mapping[str, Any], key: str, record: str) -> Optional[float]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MappingError(f"{record}: field '{key}' must be a number")
    return float(value)


def integer(payload: Mapping[str, Any], key: str, record: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MappingError(f"{record}: field '{key}' must be an integer")
    return int(value)


def flag(payload: Mapping[str, Any], key: str, record: str) -> bool:
    value = payload.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise MappingError(f"{record}: field '{key}' must be a boolean")
    return value


def string_list(payload: Mapping[str, Any], key: str, record: str) -> Optional[List[str]]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MappingError(f"{record}: field '{key}' must be a list of strings")
    return list(value)


def object_list(payload: Mapping[str, Any], key: str, record: str) -> Optional[List[Any]]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise MappingError(f"{record}: field '{key}' must be a list")
    return value


@dataclass(slots=True)
class FileMetadata:
    filename: str
    ext: str
    path: str
    rel_path: str
    size: Optional[int] = None

    @classmethod
    def from_record(cls, payload: object) -> "FileMetadata":
        data = expect_object(payload, "FileMetadata")
        return cls(
            filename=text(data, "filename", "FileMetadata", required=True),
            ext=text(data, "ext", "FileMetadata") or "",
            path=text(data, "path", "FileMetadata", required=True),
            rel_path=text(data, "relPath", "FileMetadata") or "",
            size=integer(data, "size", "FileMetadata"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class LibraryFile:
    ino: str
    metadata: FileMetadata

    @classmethod
    def from_record(cls, payload: object) -> "LibraryFile":
        data = expect_object(payload, "LibraryFile")
        return cls(
            ino=text(data, "ino", "LibraryFile", required=True),
            metadata=FileMetadata.from_record(require(data, "metadata", "LibraryFile")),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class AudioFile:
    index: int
    ino: str
    metadata: FileMetadata

    @classmethod
    def from_record(cls, payload: object) -> "AudioFile":
        data = expect_object(payload, "AudioFile")
        return cls(
            index=integer(data, "index", "AudioFile") or 0,
            ino=text(data, "ino", "AudioFile", required=True),
            metadata=FileMetadata.from_record(require(data, "metadata", "AudioFile")),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class Folder:
    id: str
    full_path: str

    @classmethod
    def from_record(cls, payload: object) -> "Folder":
        data = expect_object(payload, "Folder")
        return cls(
            id=text(data, "id", "Folder", required=True),
            full_path=text(data, "fullPath", "Folder", required=True),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class Library:
    id: str
    name: str
    folders: List[Folder] = field(default_factory=list)
    icon: str = ""
    media_type: str = "book"

    @classmethod
    def from_record(cls, payload: object) -> "Library":
        data = expect_object(payload, "Library")
        return cls(
            id=text(data, "id", "Library", required=True),
            name=text(data, "name", "Library", required=True),
            folders=[Folder.from_record(item) for item in object_list(data, "folders", "Library") or []],
            icon=text(data, "icon", "Library") or "",
            media_type=text(data, "mediaType", "Library") or "book",
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class Author:
    id: str
    name: str
    cover_path: Optional[str] = None

    @classmethod
    def from_record(cls, payload: object) -> "Author":
        data = expect_object(payload, "Author")
        return cls(
            id=text(data, "id", "Author", required=True),
            name=text(data, "name", "Author", required=True),
            cover_path=text(data, "coverPath", "Author"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class AudioProbeResult:
    """Stream properties reported by probing an audio file."""

    format: Optional[str] = None
    duration: Optional[float] = None
    size: Optional[int] = None
    bit_rate: Optional[int] = None
    codec: Optional[str] = None
    channels: Optional[int] = None
    channel_layout: Optional[str] = None
    sample_rate: Optional[int] = None
    embedded_cover_art: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_record(cls, payload: object) -> "AudioProbeResult":
        data = expect_object(payload, "AudioProbeResult")
        tags = data.get("tags") or {}
        if not isinstance(tags, Mapping):
            raise MappingError("AudioProbeResult: field 'tags' must be an object")
        return cls(
            format=text(data, "format", "AudioProbeResult"),
            duration=number(data, "duration", "AudioProbeResult"),
            size=integer(data, "size", "AudioProbeResult"),
            bit_rate=integer(data, "bitRate", "AudioProbeResult"),
            codec=text(data, "codec", "AudioProbeResult"),
            channels=integer(data, "channels", "AudioProbeResult"),
            channel_layout=text(data, "channelLayout", "AudioProbeResult"),
            sample_rate=integer(data, "sampleRate", "AudioProbeResult"),
            embedded_cover_art=text(data, "embeddedCoverArt", "AudioProbeResult"),
            tags={str(key): str(value) for key, value in tags.items()},
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class BookChapter:
    id: int
    start: float
    end: float
    title: Optional[str] = None

    @classmethod
    def from_record(cls, payload: object) -> "BookChapter":
        data = expect_object(payload, "BookChapter")
        return cls(
            id=integer(data, "id", "BookChapter") or 0,
            start=number(data, "start", "BookChapter") or 0.0,
            end=number(data, "end", "BookChapter") or 0.0,
            title=text(data, "title", "BookChapter"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class AudioTrack:
    """A single playable audio segment.

    ``index``, ``start_offset`` and the owning media's aggregate duration are
    written only by the reconciliation operations in :mod:`audioshelf_media.media`.
    ``local_file_id`` is owned by whoever produced the track and is never rewritten.
    """

    index: int
    start_offset: float
    duration: float
    title: str
    content_url: str = ""
    mime_type: str = ""
    metadata: Optional[FileMetadata] = None
    is_local: bool = False
    local_file_id: Optional[str] = None
    audio_probe_result: Optional[AudioProbeResult] = None
    server_index: Optional[int] = None

    @property
    def start_offset_ms(self) -> int:
        return int(self.start_offset * 1000)

    @property
    def duration_ms(self) -> int:
        return int(self.duration * 1000)

    @property
    def end_offset_ms(self) -> int:
        # Sum of the truncated parts, not a truncated end time.
        return self.start_offset_ms + self.duration_ms

    @property
    def rel_path(self) -> str:
        return self.metadata.rel_path if self.metadata else ""

    def get_book_chapter(self) -> BookChapter:
        return BookChapter(
            id=self.index + 1,
            start=self.start_offset,
            end=self.start_offset + self.duration,
            title=self.title,
        )

    @classmethod
    def from_record(cls, payload: object) -> "AudioTrack":
        data = expect_object(payload, "AudioTrack")
        metadata = data.get("metadata")
        probe = data.get("audioProbeResult")
        return cls(
            index=integer(data, "index", "AudioTrack") or 0,
            start_offset=number(data, "startOffset", "AudioTrack") or 0.0,
            duration=number(data, "duration", "AudioTrack") or 0.0,
            title=text(data, "title", "AudioTrack") or "",
            content_url=text(data, "contentUrl", "AudioTrack") or "",
            mime_type=text(data, "mimeType", "AudioTrack") or "",
            metadata=FileMetadata.from_record(metadata) if metadata is not None else None,
            is_local=flag(data, "isLocal", "AudioTrack"),
            local_file_id=text(data, "localFileId", "AudioTrack"),
            audio_probe_result=AudioProbeResult.from_record(probe) if probe is not None else None,
            server_index=integer(data, "serverIndex", "AudioTrack"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class PodcastEpisode:
    id: str
    index: int
    episode: Optional[str] = None
    episode_type: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    audio_file: Optional[AudioFile] = None
    audio_track: Optional[AudioTrack] = None
    duration: Optional[float] = None
    size: Optional[int] = None
    # Links a local episode back to the server episode it was downloaded from.
    server_episode_id: Optional[str] = None

    @property
    def local_file_id(self) -> Optional[str]:
        return self.audio_track.local_file_id if self.audio_track else None

    @classmethod
    def from_record(cls, payload: object) -> "PodcastEpisode":
        data = expect_object(payload, "PodcastEpisode")
        audio_file = data.get("audioFile")
        audio_track = data.get("audioTrack")
        return cls(
            id=text(data, "id", "PodcastEpisode", required=True),
            index=integer(data, "index", "PodcastEpisode") or 0,
            episode=text(data, "episode", "PodcastEpisode"),
            episode_type=text(data, "episodeType", "PodcastEpisode"),
            title=text(data, "title", "PodcastEpisode"),
            subtitle=text(data, "subtitle", "PodcastEpisode"),
            description=text(data, "description", "PodcastEpisode"),
            audio_file=AudioFile.from_record(audio_file) if audio_file is not None else None,
            audio_track=AudioTrack.from_record(audio_track) if audio_track is not None else None,
            duration=number(data, "duration", "PodcastEpisode"),
            size=integer(data, "size", "PodcastEpisode"),
            server_episode_id=text(data, "serverEpisodeId", "PodcastEpisode"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class MediaProgress:
    id: str
    library_item_id: str
    episode_id: Optional[str] = None
    duration: float = 0.0
    # Fraction of the item listened to, 0.0 to 1.0.
    progress: float = 0.0
    current_time: float = 0.0
    is_finished: bool = False
    last_update: int = 0
    started_at: int = 0
    finished_at: Optional[int] = None

    @classmethod
    def from_record(cls, payload: object) -> "MediaProgress":
        data = expect_object(payload, "MediaProgress")
        return cls(
            id=text(data, "id", "MediaProgress", required=True),
            library_item_id=text(data, "libraryItemId", "MediaProgress", required=True),
            episode_id=text(data, "episodeId", "MediaProgress"),
            duration=number(data, "duration", "MediaProgress") or 0.0,
            progress=number(data, "progress", "MediaProgress") or 0.0,
            current_time=number(data, "currentTime", "MediaProgress") or 0.0,
            is_finished=flag(data, "isFinished", "MediaProgress"),
            last_update=integer(data, "lastUpdate", "MediaProgress") or 0,
            started_at=integer(data, "startedAt", "MediaProgress") or 0,
            finished_at=integer(data, "finishedAt", "MediaProgress"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)
