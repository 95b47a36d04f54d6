import os
import tempfile
import unittest
from pathlib import Path

from audioshelf_media.config import Settings, find_config


class TestSettings(unittest.TestCase):
    def test_load_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text(
                "server:\n"
                "  address: https://abs.example.com/\n"
                "  token: secret\n"
                "scanner:\n"
                "  include_extensions: [MP3, .m4b]\n"
                "  exclude_patterns: ['extras/*']\n",
                encoding="utf-8",
            )
            settings = Settings.load(path)
        self.assertEqual(settings.server.address, "https://abs.example.com")
        self.assertEqual(settings.server.token, "secret")
        self.assertEqual(settings.scanner.include_extensions, [".mp3", ".m4b"])
        self.assertEqual(settings.scanner.exclude_patterns, ["extras/*"])

    def test_empty_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text("", encoding="utf-8")
            settings = Settings.load(path)
        self.assertEqual(settings.server.address, "")
        self.assertIn(".mp3", settings.scanner.include_extensions)

    def test_find_config_prefers_explicit_path(self) -> None:
        explicit = Path("/somewhere/custom.yaml")
        self.assertEqual(find_config(explicit), explicit)

    def test_find_config_searches_cwd(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            previous = Path.cwd()
            os.chdir(tmpdir)
            try:
                with self.assertRaises(FileNotFoundError):
                    find_config(None)
                (Path(tmpdir) / "config.yml").write_text("{}", encoding="utf-8")
                self.assertEqual(find_config(None).name, "config.yml")
            finally:
                os.chdir(previous)


if __name__ == "__main__":
    unittest.main()
