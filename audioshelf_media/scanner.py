from __future__ import annotations

import fnmatch
import hashlib
import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import mutagen
from mutagen import MutagenError

from .config import ScannerSettings
from .library_item import BOOK, PODCAST, LibraryItem
from .media import (
    Book,
    Podcast,
    add_audio_track,
    get_audio_tracks,
    get_local_copy,
    remove_audio_track,
    set_audio_tracks,
)
from .metadata import BookMetadata
from .models import AudioProbeResult, AudioTrack, FileMetadata, LibraryFile

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "local_"
SCAN_VERSION = "1"


def stable_id(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


@dataclass
class RescanResult:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class LocalFolderScanner:
    """Turns a folder of audio files into tracks and local library items."""

    def __init__(self, settings: ScannerSettings) -> None:
        self.settings = settings
        self._exts = {ext.lower() for ext in settings.include_extensions}

    def iter_audio_files(self, folder: Path) -> Iterator[Path]:
        for path in sorted(folder.rglob("*"), key=lambda p: p.relative_to(folder).as_posix()):
            if path.is_file() and self._should_include(path, folder):
                yield path

    def _should_include(self, path: Path, folder: Path) -> bool:
        if path.suffix.lower() not in self._exts:
            return False
        rel = path.relative_to(folder).as_posix()
        for pattern in self.settings.exclude_patterns:
            if fnmatch.fnmatch(rel, pattern):
                return False
        return True

    def scan_tracks(self, folder: Path) -> list[AudioTrack]:
        tracks: list[AudioTrack] = []
        for path in self.iter_audio_files(folder):
            track = self.probe(path, folder)
            if track is None:
                continue
            track.index = len(tracks) + 1
            tracks.append(track)
        logger.info("Scanned %s: %d audio tracks", folder, len(tracks))
        return tracks

    def probe(self, path: Path, folder: Path) -> Optional[AudioTrack]:
        try:
            audio = mutagen.File(path, easy=True)
        except (MutagenError, OSError) as exc:
            logger.warning("Skipping unreadable audio file %s: %s", path, exc)
            return None
        if audio is None or audio.info is None:
            logger.warning("Skipping unrecognised audio file %s", path)
            return None
        rel_path = path.relative_to(folder).as_posix()
        size = path.stat().st_size
        info = audio.info
        duration = float(getattr(info, "length", 0.0) or 0.0)
        tags = _flatten_tags(audio.tags)
        mime = audio.mime[0] if getattr(audio, "mime", None) else f"audio/{path.suffix.lstrip('.').lower()}"
        probe = AudioProbeResult(
            format=type(audio).__name__.lower(),
            duration=duration,
            size=size,
            bit_rate=getattr(info, "bitrate", None),
            codec=getattr(info, "codec", None),
            channels=getattr(info, "channels", None),
            sample_rate=getattr(info, "sample_rate", None),
            tags=tags,
        )
        return AudioTrack(
            index=0,
            start_offset=0.0,
            duration=duration,
            title=tags.get("title") or path.stem,
            content_url=path.as_uri(),
            mime_type=mime,
            metadata=FileMetadata(
                filename=path.name,
                ext=path.suffix,
                path=str(path),
                rel_path=rel_path,
                size=size,
            ),
            is_local=True,
            local_file_id=LOCAL_PREFIX + stable_id(rel_path),
            audio_probe_result=probe,
        )

    def library_files(self, folder: Path) -> list[LibraryFile]:
        files: list[LibraryFile] = []
        for path in sorted(p for p in folder.rglob("*") if p.is_file()):
            stat = path.stat()
            files.append(
                LibraryFile(
                    ino=str(stat.st_ino),
                    metadata=FileMetadata(
                        filename=path.name,
                        ext=path.suffix,
                        path=str(path),
                        rel_path=path.relative_to(folder).as_posix(),
                        size=stat.st_size,
                    ),
                )
            )
        return files

    def build_item(self, folder: Path, *, remote: Optional[LibraryItem] = None) -> LibraryItem:
        """Build a local library item for ``folder``.

        With a ``remote`` item the local copy keeps its description and only the
        tracks come from disk; otherwise a book is described from the file tags.
        """
        folder = folder.resolve()
        tracks = self.scan_tracks(folder)
        if remote is not None:
            media = get_local_copy(remote.media)
        else:
            media = Book(metadata=_book_metadata_from_tracks(folder, tracks), tracks=[], num_tracks=0)
        set_audio_tracks(media, tracks)

        stat = folder.stat()
        now_ms = int(time.time() * 1000)
        return LibraryItem(
            id=LOCAL_PREFIX + stable_id(str(folder)),
            ino=str(stat.st_ino),
            library_id=remote.library_id if remote is not None else LOCAL_PREFIX + "library",
            folder_id=LOCAL_PREFIX + stable_id(str(folder.parent)),
            path=str(folder),
            rel_path=folder.name,
            mtime_ms=int(stat.st_mtime * 1000),
            ctime_ms=int(stat.st_ctime * 1000),
            birthtime_ms=int(getattr(stat, "st_birthtime", stat.st_ctime) * 1000),
            added_at=now_ms,
            updated_at=now_ms,
            last_scan=now_ms,
            scan_version=SCAN_VERSION,
            is_missing=False,
            is_invalid=not tracks,
            media_type=PODCAST if isinstance(media, Podcast) else BOOK,
            media=media,
            library_files=self.library_files(folder),
            user_media_progress=None,
        )

    def rescan(self, item: LibraryItem, folder: Path) -> RescanResult:
        """Bring ``item`` in line with the audio files currently in ``folder``."""
        folder = folder.resolve()
        if not folder.is_dir():
            logger.warning("Folder for %s is missing: %s", item.id, folder)
            item.is_missing = True
            return RescanResult()
        scanned = self.scan_tracks(folder)
        known = {track.local_file_id for track in get_audio_tracks(item.media) if track.local_file_id}
        present = {track.local_file_id for track in scanned}

        result = RescanResult()
        for local_file_id in sorted(known - present):
            remove_audio_track(item.media, local_file_id)
            result.removed.append(local_file_id)
        for track in scanned:
            if track.local_file_id in known:
                continue
            add_audio_track(item.media, track)
            result.added.append(track.local_file_id)

        item.library_files = self.library_files(folder)
        item.is_missing = False
        item.is_invalid = not get_audio_tracks(item.media)
        item.last_scan = int(time.time() * 1000)
        if result.changed:
            item.updated_at = item.last_scan
            logger.info(
                "Rescanned %s: %d added, %d removed", folder, len(result.added), len(result.removed)
            )
        return result


def _flatten_tags(tags: Any) -> dict[str, str]:
    if not tags:
        return {}
    flat: dict[str, str] = {}
    for key in tags.keys():
        values = tags.get(key)
        if not values:
            continue
        first = values[0] if isinstance(values, list) else values
        flat[str(key).lower()] = str(first)
    return flat


def _book_metadata_from_tracks(folder: Path, tracks: list[AudioTrack]) -> BookMetadata:
    tags = tracks[0].audio_probe_result.tags if tracks and tracks[0].audio_probe_result else {}
    author = tags.get("albumartist") or tags.get("artist")
    return BookMetadata(
        title=tags.get("album") or folder.name,
        author_name=author,
        narrators=[tags["composer"]] if tags.get("composer") else None,
        genres=[tags["genre"]] if tags.get("genre") else [],
    )
