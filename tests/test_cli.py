import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

from audioshelf_media.cli import main
from audioshelf_media.library_item import load_library_item


def _fake_file(path, easy=False):
    return SimpleNamespace(
        info=SimpleNamespace(length=12.5, bitrate=64000, channels=1, sample_rate=22050),
        tags={"album": ["Walden"], "artist": ["Henry David Thoreau"]},
        mime=["audio/mpeg"],
    )


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.config = self.tmp / "config.yaml"
        self.config.write_text(
            "server:\n  address: https://abs.example.com\n  token: tok\n", encoding="utf-8"
        )
        self.folder = self.tmp / "Walden"
        self.folder.mkdir()
        for name in ("01.mp3", "02.mp3"):
            (self.folder / name).write_bytes(b"\x00")
        patcher = mock.patch("mutagen.File", side_effect=_fake_file)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, *argv: str) -> str:
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            main(["--config", str(self.config), "--log-level", "WARNING", *argv])
        return buffer.getvalue()

    def test_scan_then_show(self) -> None:
        out = self.tmp / "item.json"
        self._run("scan", str(self.folder), "--out", str(out))

        item = load_library_item(out.read_text(encoding="utf-8"))
        self.assertEqual(item.media.duration, 25.0)

        shown = self._run("show", str(out))
        self.assertIn("Walden - Henry David Thoreau", shown)
        self.assertIn("cover: resource://", shown)
        self.assertIn("[2] 12.5-25.0 02", shown)

    def test_rescan_updates_item_file(self) -> None:
        out = self.tmp / "item.json"
        self._run("scan", str(self.folder), "--out", str(out))
        (self.folder / "03.mp3").write_bytes(b"\x00")

        printed = self._run("rescan", str(out), str(self.folder))

        self.assertIn("added: 1, removed: 0", printed)
        saved = json.loads(out.read_text(encoding="utf-8"))
        self.assertEqual(saved["media"]["numTracks"], 3)
        self.assertEqual(saved["media"]["duration"], 37.5)

    def test_malformed_item_exits_with_message(self) -> None:
        bad = self.tmp / "bad.json"
        bad.write_text(json.dumps({"id": "x", "media": []}), encoding="utf-8")
        with self.assertRaises(SystemExit) as ctx:
            self._run("show", str(bad))
        self.assertIn("error:", str(ctx.exception.code))


if __name__ == "__main__":
    unittest.main()
