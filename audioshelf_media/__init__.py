"""Library items for audiobooks and podcasts, and the helpers that keep them consistent.

A :class:`LibraryItem` wraps either a :class:`Book` (ordered audio tracks) or a
:class:`Podcast` (episodes that may carry a track). The functions re-exported
here add, replace and remove tracks while keeping indexes dense and book
offsets contiguous. :mod:`audioshelf_media.scanner` builds items from local
folders.
"""

from importlib import metadata as _importlib_metadata

from .library_item import LibraryItem, dump_library_item, load_library_item
from .media import (
    Book,
    MediaType,
    Podcast,
    add_audio_track,
    add_episode,
    get_audio_tracks,
    get_local_copy,
    remove_audio_track,
    set_audio_tracks,
)
from .models import AudioTrack, MappingError, PodcastEpisode

__all__ = [
    "AudioTrack",
    "Book",
    "LibraryItem",
    "MappingError",
    "MediaType",
    "Podcast",
    "PodcastEpisode",
    "__version__",
    "add_audio_track",
    "add_episode",
    "dump_library_item",
    "get_audio_tracks",
    "get_local_copy",
    "load_library_item",
    "remove_audio_track",
    "set_audio_tracks",
]


def __getattr__(name: str) -> str:
    if name == "__version__":
        try:
            return _importlib_metadata.version("audioshelf-media")
        except _importlib_metadata.PackageNotFoundError:  # pragma: no cover - source checkout without install
            return "0.0.0"
    raise AttributeError(name)
