"""Tests for the background image library."""

import io
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np
import requests
from PIL import Image

from camfx.core.types import BackgroundMode, Settings
from camfx.utils.assets import AssetError, BackgroundLibrary, load_image


def png_bytes(color=(255, 0, 0), size=(8, 6)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class TestBackgroundLibrary(unittest.TestCase):
    """Test BackgroundLibrary."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.library = BackgroundLibrary(self.root / "backgrounds")

        self.source = self.root / "red.png"
        self.source.write_bytes(png_bytes())

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_install_local_file(self):
        """Test installing an image from disk."""
        path = self.library.install_background(BackgroundMode.INCLUDED1, str(self.source))

        self.assertEqual(path, self.library.install_dir / "included1.png")
        self.assertTrue(self.library.is_installed(BackgroundMode.INCLUDED1))
        self.assertEqual(self.library.list_installed(), [BackgroundMode.INCLUDED1])

    def test_loaded_image_is_bgr(self):
        self.library.install_background(BackgroundMode.CUSTOM, str(self.source))
        image = self.library.load_background(BackgroundMode.CUSTOM)

        self.assertEqual(image.shape, (6, 8, 3))
        self.assertEqual(image.dtype, np.uint8)
        np.testing.assert_array_equal(image[0, 0], [0, 0, 255])

    def test_existing_image_kept_without_force(self):
        first = self.library.install_background(BackgroundMode.INCLUDED2, str(self.source))
        other = self.root / "other.jpg"
        Image.new("RGB", (4, 4), (0, 0, 255)).save(other)

        self.assertEqual(self.library.install_background(BackgroundMode.INCLUDED2, str(other)), first)

        replaced = self.library.install_background(BackgroundMode.INCLUDED2, str(other), force=True)
        self.assertEqual(replaced.suffix, ".jpg")
        self.assertFalse(first.exists())

    def test_install_for_blur_mode(self):
        with self.assertRaises(AssetError):
            self.library.install_background(BackgroundMode.STRONG_BLUR, str(self.source))

    def test_install_missing_file(self):
        with self.assertRaises(AssetError):
            self.library.install_background(BackgroundMode.CUSTOM, str(self.root / "missing.png"))

    def test_install_invalid_image(self):
        """Test that a non-image is rejected and leaves nothing behind."""
        bogus = self.root / "notes.png"
        bogus.write_text("not an image")

        with self.assertRaises(AssetError):
            self.library.install_background(BackgroundMode.CUSTOM, str(bogus))

        self.assertEqual(list(self.library.install_dir.iterdir()), [])

    @patch('camfx.utils.assets.requests.get')
    def test_install_from_url(self, mock_get):
        """Test downloading an image."""
        data = png_bytes(color=(0, 255, 0))
        response = Mock()
        response.headers = {'content-length': str(len(data))}
        response.iter_content.return_value = [data[:10], data[10:]]
        mock_get.return_value = response

        path = self.library.install_background(BackgroundMode.INCLUDED3, "https://example.com/green.png")

        mock_get.assert_called_once_with("https://example.com/green.png", stream=True, timeout=30)
        response.raise_for_status.assert_called_once()
        self.assertEqual(path.name, "included3.png")
        np.testing.assert_array_equal(load_image(path)[0, 0], [0, 255, 0])

    @patch('camfx.utils.assets.requests.get')
    def test_download_failure(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")

        with self.assertRaises(AssetError):
            self.library.install_background(BackgroundMode.CUSTOM, "https://example.com/bg.png")

        self.assertFalse(self.library.is_installed(BackgroundMode.CUSTOM))

    def test_remove_background(self):
        self.library.install_background(BackgroundMode.CUSTOM, str(self.source))
        self.library.remove_background(BackgroundMode.CUSTOM)

        self.assertFalse(self.library.is_installed(BackgroundMode.CUSTOM))
        with self.assertRaises(FileNotFoundError):
            self.library.remove_background(BackgroundMode.CUSTOM)

    def test_resolve_attaches_images(self):
        """Test attaching installed and explicit images to settings."""
        self.library.install_background(BackgroundMode.INCLUDED1, str(self.source))
        explicit = self.root / "blue.png"
        Image.new("RGB", (3, 3), (0, 0, 255)).save(explicit)

        settings = self.library.resolve(Settings(), custom_image_path=str(explicit))

        self.assertEqual(settings.included1_background.shape, (6, 8, 3))
        np.testing.assert_array_equal(settings.custom_background[0, 0], [255, 0, 0])
        self.assertIsNone(settings.included2_background)

    def test_install_info(self):
        self.library.install_background(BackgroundMode.INCLUDED1, str(self.source))
        info = self.library.get_install_info()

        self.assertTrue(info["backgrounds"]["included1"]["installed"])
        self.assertGreater(info["backgrounds"]["included1"]["size"], 0)
        self.assertFalse(info["backgrounds"]["custom"]["installed"])


class TestLoadImage(unittest.TestCase):
    """Test load_image."""

    def test_missing_file(self):
        with self.assertLogs('camfx.utils.assets', level='WARNING'):
            self.assertIsNone(load_image("/nonexistent/background.png"))


if __name__ == '__main__':
    unittest.main()
