import shutil
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

from mutagen import MutagenError

from audioshelf_media.config import ScannerSettings
from audioshelf_media.library_item import LibraryItem
from audioshelf_media.media import Book, Podcast, get_audio_tracks
from audioshelf_media.metadata import PodcastMetadata
from audioshelf_media.scanner import LocalFolderScanner, stable_id


def _local_id(rel_path: str) -> str:
    return "local_" + stable_id(rel_path)


DURATIONS = {"01.mp3": 10.0, "02.mp3": 20.0, "03.mp3": 5.0, "04.mp3": 7.5}


def _fake_file(path, easy=False):
    path = Path(path)
    if path.name == "broken.mp3":
        raise MutagenError("can't sync to MPEG frame")
    tags = {"album": ["Dune"], "artist": ["Frank Herbert"]}
    if path.name == "01.mp3":
        tags["title"] = ["Prologue"]
    return SimpleNamespace(
        info=SimpleNamespace(length=DURATIONS[path.name], bitrate=64000, channels=2, sample_rate=44100),
        tags=tags,
        mime=["audio/mp3", "audio/mpeg"],
    )


class TestLocalFolderScanner(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.folder = Path(self._tmp.name) / "Dune"
        self.folder.mkdir()
        for name in ("01.mp3", "02.mp3", "03.mp3"):
            (self.folder / name).write_bytes(b"\x00" * 16)
        (self.folder / "notes.txt").write_text("liner notes", encoding="utf-8")
        self.scanner = LocalFolderScanner(ScannerSettings(include_extensions=[".mp3"]))
        patcher = mock.patch("mutagen.File", side_effect=_fake_file)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def assert_book_positions(self, book: Book) -> None:
        tracks = get_audio_tracks(book)
        self.assertEqual([t.index for t in tracks], list(range(1, len(tracks) + 1)))
        running = 0.0
        for track in tracks:
            self.assertAlmostEqual(track.start_offset, running)
            running += track.duration
        self.assertAlmostEqual(book.duration, running)

    def test_scan_tracks_orders_and_keys_files(self) -> None:
        tracks = self.scanner.scan_tracks(self.folder)

        self.assertEqual([t.rel_path for t in tracks], ["01.mp3", "02.mp3", "03.mp3"])
        self.assertEqual([t.index for t in tracks], [1, 2, 3])
        self.assertEqual(tracks[0].title, "Prologue")
        self.assertEqual(tracks[1].title, "02")
        self.assertEqual(tracks[0].mime_type, "audio/mp3")
        self.assertTrue(all(t.is_local for t in tracks))
        self.assertEqual(tracks[0].local_file_id, "local_" + stable_id("01.mp3"))
        self.assertRegex(tracks[1].local_file_id, r"^local_[0-9a-f]{40}$")
        self.assertEqual(tracks[0].audio_probe_result.sample_rate, 44100)
        self.assertTrue(tracks[0].content_url.startswith("file://"))

    def test_local_file_ids_are_stable_across_scans(self) -> None:
        first = [t.local_file_id for t in self.scanner.scan_tracks(self.folder)]
        second = [t.local_file_id for t in self.scanner.scan_tracks(self.folder)]
        self.assertEqual(first, second)
        self.assertEqual(len(set(first)), 3)

    def test_exclude_patterns(self) -> None:
        scanner = LocalFolderScanner(ScannerSettings(include_extensions=[".mp3"], exclude_patterns=["02.*"]))
        tracks = scanner.scan_tracks(self.folder)
        self.assertEqual([t.rel_path for t in tracks], ["01.mp3", "03.mp3"])

    def test_unreadable_file_is_skipped(self) -> None:
        (self.folder / "broken.mp3").write_bytes(b"junk")
        with self.assertLogs("audioshelf_media.scanner", level="WARNING") as logs:
            tracks = self.scanner.scan_tracks(self.folder)
        self.assertEqual(len(tracks), 3)
        self.assertIn("broken.mp3", "\n".join(logs.output))

    def test_build_item_from_folder(self) -> None:
        item = self.scanner.build_item(self.folder)

        self.assertTrue(item.id.startswith("local_"))
        self.assertEqual(item.media_type, "book")
        self.assertIsInstance(item.media, Book)
        self.assertEqual(item.title, "Dune")
        self.assertEqual(item.author_name, "Frank Herbert")
        self.assertIsNone(item.user_media_progress)
        self.assertTrue(item.check_has_tracks())
        self.assertEqual(item.media.duration, 35.0)
        self.assert_book_positions(item.media)
        self.assertEqual(
            sorted(f.metadata.filename for f in item.library_files),
            ["01.mp3", "02.mp3", "03.mp3", "notes.txt"],
        )

    def test_build_item_from_remote_podcast(self) -> None:
        remote = self.scanner.build_item(self.folder)
        remote.media = Podcast(
            metadata=PodcastMetadata(title="Daily", author="Host"),
            cover_path="/covers/daily.jpg",
            episodes=[],
            num_episodes=5,
        )
        remote.media_type = "podcast"
        remote.library_id = "lib_server"

        item = self.scanner.build_item(self.folder, remote=remote)

        self.assertIsInstance(item, LibraryItem)
        self.assertEqual(item.media_type, "podcast")
        self.assertEqual(item.library_id, "lib_server")
        self.assertEqual(item.media.metadata.title, "Daily")
        self.assertEqual(item.media.num_episodes, 3)
        self.assertEqual([ep.index for ep in item.media.episodes], [1, 2, 3])
        self.assertTrue(all(ep.id.startswith("local_ep_") for ep in item.media.episodes))

    def test_rescan_reconciles_added_and_removed_files(self) -> None:
        item = self.scanner.build_item(self.folder)
        (self.folder / "02.mp3").unlink()
        (self.folder / "04.mp3").write_bytes(b"\x00")

        result = self.scanner.rescan(item, self.folder)

        self.assertEqual(result.removed, [_local_id("02.mp3")])
        self.assertEqual(result.added, [_local_id("04.mp3")])
        self.assertEqual([t.rel_path for t in get_audio_tracks(item.media)], ["01.mp3", "03.mp3", "04.mp3"])
        self.assertEqual(item.media.duration, 22.5)
        self.assert_book_positions(item.media)

    def test_rescan_without_changes(self) -> None:
        item = self.scanner.build_item(self.folder)
        result = self.scanner.rescan(item, self.folder)
        self.assertFalse(result.changed)
        self.assertEqual(len(get_audio_tracks(item.media)), 3)

    def test_rescan_missing_folder_marks_item(self) -> None:
        item = self.scanner.build_item(self.folder)
        shutil.rmtree(self.folder)
        with self.assertLogs("audioshelf_media.scanner", level="WARNING"):
            result = self.scanner.rescan(item, self.folder)
        self.assertFalse(result.changed)
        self.assertTrue(item.is_missing)
        self.assertEqual(len(get_audio_tracks(item.media)), 3)


if __name__ == "__main__":
    unittest.main()
