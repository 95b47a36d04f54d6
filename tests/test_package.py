import unittest

import audioshelf_media
from audioshelf_media import media, models


class TestPackageSurface(unittest.TestCase):
    def test_reconciliation_api_is_reexported(self) -> None:
        self.assertIs(audioshelf_media.remove_audio_track, media.remove_audio_track)
        self.assertIs(audioshelf_media.Book, media.Book)
        self.assertIs(audioshelf_media.AudioTrack, models.AudioTrack)
        for name in audioshelf_media.__all__:
            self.assertTrue(hasattr(audioshelf_media, name), name)

    def test_version_is_a_string(self) -> None:
        self.assertIsInstance(audioshelf_media.__version__, str)

    def test_unknown_attribute_raises(self) -> None:
        with self.assertRaises(AttributeError):
            audioshelf_media.not_a_name


if __name__ == "__main__":
    unittest.main()
