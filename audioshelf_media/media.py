"""
Book and podcast media plus the track/episode reconciliation operations.

``MediaType`` is a closed union of :class:`Book` and :class:`Podcast`. The
operations below dispatch on the variant and are the only code that writes
position-dependent fields:

- Book: ``tracks`` ordered by ``index`` (dense, 1-based), ``start_offset`` of
  each track equal to the running sum of the previous durations, and
  ``duration`` equal to the sum of all track durations.
- Podcast: ``episodes`` indexed densely from 1 in list order. Episodes play
  independently, so no offsets or aggregate duration are kept.

A track's ``local_file_id`` is the key that identifies "the same file" across
calls; it is read here but never changed.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .metadata import BookMetadata, PodcastMetadata, metadata_from_record
from .models import (
    AudioFile,
    AudioTrack,
    BookChapter,
    MappingError,
    PodcastEpisode,
    dump_record,
    expect_object,
    flag,
    integer,
    number,
    object_list,
    require,
    string_list,
    text,
)

logger = logging.getLogger(__name__)

LOCAL_EPISODE_PREFIX = "local_"
SYNCED_EPISODE_PREFIX = "local_ep_"

# Presence of any of these keys marks a media payload as a podcast.
PODCAST_KEYS = frozenset({"episodes", "autoDownloadEpisodes", "numEpisodes"})


@dataclass(slots=True)
class Book:
    metadata: BookMetadata
    cover_path: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    audio_files: Optional[List[AudioFile]] = None
    chapters: Optional[List[BookChapter]] = None
    tracks: Optional[List[AudioTrack]] = None
    size: Optional[int] = None
    duration: Optional[float] = None
    num_tracks: Optional[int] = None

    @classmethod
    def from_record(cls, payload: object) -> "Book":
        data = expect_object(payload, "Book")
        audio_files = object_list(data, "audioFiles", "Book")
        chapters = object_list(data, "chapters", "Book")
        tracks = object_list(data, "tracks", "Book")
        metadata = metadata_from_record(require(data, "metadata", "Book"))
        if not isinstance(metadata, BookMetadata):
            raise MappingError("Book: metadata has the shape of podcast metadata")
        return cls(
            metadata=metadata,
            cover_path=text(data, "coverPath", "Book"),
            tags=string_list(data, "tags", "Book") or [],
            audio_files=[AudioFile.from_record(item) for item in audio_files] if audio_files is not None else None,
            chapters=[BookChapter.from_record(item) for item in chapters] if chapters is not None else None,
            tracks=[AudioTrack.from_record(item) for item in tracks] if tracks is not None else None,
            size=integer(data, "size", "Book"),
            duration=number(data, "duration", "Book"),
            num_tracks=integer(data, "numTracks", "Book"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


@dataclass(slots=True)
class Podcast:
    metadata: PodcastMetadata
    cover_path: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    episodes: Optional[List[PodcastEpisode]] = None
    auto_download_episodes: bool = False
    num_episodes: Optional[int] = None

    @classmethod
    def from_record(cls, payload: object) -> "Podcast":
        data = expect_object(payload, "Podcast")
        episodes = object_list(data, "episodes", "Podcast")
        metadata = require(data, "metadata", "Podcast")
        return cls(
            # A podcast payload always carries podcast metadata, even when it
            # has neither an author nor a feed url yet.
            metadata=PodcastMetadata.from_record(metadata),
            cover_path=text(data, "coverPath", "Podcast"),
            tags=string_list(data, "tags", "Podcast") or [],
            episodes=[PodcastEpisode.from_record(item) for item in episodes] if episodes is not None else None,
            auto_download_episodes=flag(data, "autoDownloadEpisodes", "Podcast"),
            num_episodes=integer(data, "numEpisodes", "Podcast"),
        )

    def to_record(self) -> Dict[str, Any]:
        return dump_record(self)


MediaType = Union[Book, Podcast]


def is_podcast_shape(payload: Mapping[str, Any]) -> bool:
    return bool(PODCAST_KEYS & set(payload))


def media_from_record(payload: object) -> MediaType:
    """Build the media variant a payload describes, deciding by its keys alone."""
    data = expect_object(payload, "MediaType")
    if is_podcast_shape(data):
        return Podcast.from_record(data)
    return Book.from_record(data)


def get_audio_tracks(media: MediaType) -> List[AudioTrack]:
    match media:
        case Book():
            return list(media.tracks or [])
        case Podcast():
            return [ep.audio_track for ep in media.episodes or [] if ep.audio_track is not None]
        case _:
            raise TypeError(f"Unsupported media type: {type(media).__name__}")


def set_audio_tracks(media: MediaType, tracks: Sequence[AudioTrack]) -> None:
    """Resynchronise ``media`` with the complete set of tracks now available."""
    match media:
        case Book():
            media.tracks = sorted(tracks, key=lambda track: track.index)
            _rebuild_book_positions(media)
        case Podcast():
            _sync_podcast_episodes(media, tracks)
        case _:
            raise TypeError(f"Unsupported media type: {type(media).__name__}")


def add_audio_track(media: MediaType, track: AudioTrack) -> None:
    match media:
        case Book():
            if media.tracks is None:
                media.tracks = []
            media.tracks.append(track)
            _rebuild_book_positions(media)
        case Podcast():
            episodes = _episodes(media)
            episodes.append(_episode_for_track(track, LOCAL_EPISODE_PREFIX))
            _renumber_episodes(media)
        case _:
            raise TypeError(f"Unsupported media type: {type(media).__name__}")


def remove_audio_track(media: MediaType, local_file_id: str) -> None:
    """Drop every track (or episode) bound to ``local_file_id`` and re-derive positions.

    Unknown ids remove nothing, but positions are still re-derived.
    """
    match media:
        case Book():
            if media.tracks is None:
                return
            remaining = [track for track in media.tracks if track.local_file_id != local_file_id]
            removed = len(media.tracks) - len(remaining)
            media.tracks = sorted(remaining, key=lambda track: track.index)
            _rebuild_book_positions(media)
        case Podcast():
            if media.episodes is None:
                return
            kept = [ep for ep in media.episodes if ep.local_file_id != local_file_id]
            removed = len(media.episodes) - len(kept)
            media.episodes = kept
            _renumber_episodes(media)
        case _:
            raise TypeError(f"Unsupported media type: {type(media).__name__}")
    if removed:
        logger.debug("Removed %d entries for local file %s", removed, local_file_id)


def add_episode(podcast: Podcast, track: AudioTrack, episode: PodcastEpisode) -> PodcastEpisode:
    """Bind a downloaded ``track`` to the server ``episode`` it belongs to."""
    new_episode = PodcastEpisode(
        id=LOCAL_EPISODE_PREFIX + episode.id,
        index=0,
        episode=episode.episode,
        episode_type=episode.episode_type,
        title=episode.title,
        subtitle=episode.subtitle,
        description=episode.description,
        audio_file=None,
        audio_track=track,
        duration=track.duration,
        size=0,
        server_episode_id=episode.id,
    )
    _episodes(podcast).append(new_episode)
    _renumber_episodes(podcast)
    return new_episode


def get_local_copy(media: MediaType) -> MediaType:
    """Return a copy to be filled with local files: same description, no tracks or episodes."""
    match media:
        case Book():
            return Book(
                metadata=copy.deepcopy(media.metadata),
                cover_path=media.cover_path,
                tags=list(media.tags),
                audio_files=[],
                chapters=copy.deepcopy(media.chapters),
                tracks=[],
                size=None,
                duration=None,
                num_tracks=0,
            )
        case Podcast():
            return Podcast(
                metadata=copy.deepcopy(media.metadata),
                cover_path=media.cover_path,
                tags=list(media.tags),
                episodes=[],
                auto_download_episodes=media.auto_download_episodes,
                num_episodes=0,
            )
        case _:
            raise TypeError(f"Unsupported media type: {type(media).__name__}")


def _rebuild_book_positions(book: Book) -> None:
    # Tracks are already in playback order; derive index, offset and total in one pass.
    tracks = book.tracks or []
    offset = 0.0
    for index, track in enumerate(tracks, start=1):
        track.index = index
        track.start_offset = offset
        offset += track.duration or 0.0
    book.duration = offset
    book.num_tracks = len(tracks)


def _sync_podcast_episodes(podcast: Podcast, tracks: Sequence[AudioTrack]) -> None:
    wanted = {track.local_file_id for track in tracks}
    kept = [ep for ep in podcast.episodes or [] if ep.audio_track is not None and ep.local_file_id in wanted]
    dropped = len(podcast.episodes or []) - len(kept)
    podcast.episodes = kept
    for track in tracks:
        if any(ep.local_file_id == track.local_file_id for ep in kept):
            continue
        kept.append(_episode_for_track(track, SYNCED_EPISODE_PREFIX))
    _renumber_episodes(podcast)
    logger.debug("Podcast '%s' synced: %d episodes, %d dropped", podcast.metadata.title, len(kept), dropped)


def _episode_for_track(track: AudioTrack, prefix: str) -> PodcastEpisode:
    return PodcastEpisode(
        id=f"{prefix}{track.local_file_id}",
        index=0,
        episode=None,
        episode_type=None,
        title=track.title,
        subtitle=None,
        description=None,
        audio_file=None,
        audio_track=track,
        duration=track.duration,
        size=0,
        server_episode_id=None,
    )


def _episodes(podcast: Podcast) -> List[PodcastEpisode]:
    if podcast.episodes is None:
        podcast.episodes = []
    return podcast.episodes


def _renumber_episodes(podcast: Podcast) -> None:
    episodes = _episodes(podcast)
    for index, episode in enumerate(episodes, start=1):
        episode.index = index
    podcast.num_episodes = len(episodes)
