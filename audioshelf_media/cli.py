from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import Settings, find_config
from .library_item import LibraryItem, dump_library_item, load_library_item
from .media import Book, Podcast, get_audio_tracks
from .models import MappingError
from .scanner import LocalFolderScanner

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",  # Cyan
    logging.INFO: "\033[37m",  # Light gray
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[35m",  # Magenta
}


class ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not color or not sys.stderr.isatty():
            return message
        return f"{color}{message}{C_RESET}"


def configure_logging(level_name: str) -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    handler = logging.StreamHandler()
    handler.setFormatter(ColorFormatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    logging.getLogger("mutagen").setLevel(logging.WARNING)


def load_settings(explicit: Optional[Path]) -> Settings:
    try:
        return Settings.load(find_config(explicit))
    except FileNotFoundError:
        if explicit:
            raise
        logger.debug("No config.yaml found, using defaults")
        return Settings()


def read_item(path: Path) -> LibraryItem:
    return load_library_item(path.read_text(encoding="utf-8"))


def write_item(item: LibraryItem, out: Optional[Path]) -> None:
    payload = dump_library_item(item, indent=2)
    if out is None:
        print(payload)
        return
    out.write_text(payload + "\n", encoding="utf-8")
    logger.info("Wrote %s", out)


def describe(item: LibraryItem, settings: Settings) -> list[str]:
    lines = [
        f"{item.title} - {item.author_name}",
        f"  id: {item.id} ({item.media_type})",
        f"  cover: {item.cover_uri(settings.server)}",
        f"  has tracks: {'yes' if item.check_has_tracks() else 'no'}",
    ]
    match item.media:
        case Book(duration=duration):
            lines.append(f"  duration: {duration or 0.0:.1f}s")
            for track in get_audio_tracks(item.media):
                chapter = track.get_book_chapter()
                lines.append(
                    f"  [{track.index}] {chapter.start:.1f}-{chapter.end:.1f} {chapter.title or ''}"
                )
        case Podcast(episodes=episodes):
            for episode in episodes or []:
                state = "local" if episode.audio_track else "remote"
                lines.append(f"  [{episode.index}] {episode.title or episode.id} ({state})")
    return lines


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Audiobook and podcast media tools")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    scan_parser = subparsers.add_parser("scan", help="Build a local library item from a folder")
    scan_parser.add_argument("folder", type=Path, help="Folder holding the audio files")
    scan_parser.add_argument(
        "--remote",
        type=Path,
        default=None,
        help="Library item JSON from the server to take the description from",
    )
    scan_parser.add_argument("--out", type=Path, default=None, help="Write the item JSON here")
    rescan_parser = subparsers.add_parser(
        "rescan", help="Reconcile a saved library item with its folder"
    )
    rescan_parser.add_argument("item", type=Path, help="Library item JSON file (updated in place)")
    rescan_parser.add_argument("folder", type=Path, help="Folder holding the audio files")
    rescan_parser.add_argument(
        "--dry-run", action="store_true", help="Report changes without writing the item"
    )
    show_parser = subparsers.add_parser("show", help="Describe a saved library item")
    show_parser.add_argument("item", type=Path, help="Library item JSON file")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    try:
        settings = load_settings(args.config)
        scanner = LocalFolderScanner(settings.scanner)
        match args.command:
            case "scan":
                remote = read_item(args.remote) if args.remote else None
                write_item(scanner.build_item(args.folder, remote=remote), args.out)
            case "rescan":
                item = read_item(args.item)
                result = scanner.rescan(item, args.folder)
                print(f"added: {len(result.added)}, removed: {len(result.removed)}")
                if result.changed and not args.dry_run:
                    write_item(item, args.item)
            case "show":
                for line in describe(read_item(args.item), settings):
                    print(line)
            case _:
                parser.error("Unknown command")
    except (MappingError, FileNotFoundError) as exc:
        raise SystemExit(f"error: {exc}") from exc


if __name__ == "__main__":  # pragma: no cover
    main()
