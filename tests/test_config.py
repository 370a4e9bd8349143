"""Tests for configuration management."""

import json
import tempfile
import unittest
from pathlib import Path

from camfx.config import CamFXConfig


class TestCamFXConfig(unittest.TestCase):
    """Test CamFXConfig."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.config_dir = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_defaults(self):
        config = CamFXConfig(self.config_dir)

        self.assertEqual(config.presets_file, self.config_dir / "presets.json")
        self.assertEqual(config.backgrounds_dir, self.config_dir / "backgrounds")
        self.assertEqual(config.transition_duration, 0.3)
        self.assertEqual(config.segmentation_input_size, (256, 256))
        self.assertEqual(config.get("default_preset"), "No Effect")

    def test_file_overrides_defaults(self):
        """Test that stored values merge over the defaults."""
        with open(self.config_dir / "config.json", "w") as f:
            json.dump({"transition_duration": 0.5, "segmentation_input_size": [320, 192]}, f)

        config = CamFXConfig(self.config_dir)

        self.assertEqual(config.transition_duration, 0.5)
        self.assertEqual(config.segmentation_input_size, (320, 192))
        self.assertEqual(config.get("default_preset"), "No Effect")

    def test_save_round_trip(self):
        config = CamFXConfig(self.config_dir)
        config.set("segmentation_model", "/models/selfie.onnx")
        config.save_settings()

        self.assertEqual(CamFXConfig(self.config_dir).get("segmentation_model"), "/models/selfie.onnx")

    def test_corrupt_file(self):
        (self.config_dir / "config.json").write_text("[oops")

        with self.assertLogs('camfx.config', level='WARNING'):
            config = CamFXConfig(self.config_dir)
        self.assertEqual(config.transition_duration, 0.3)

    def test_invalid_transition_duration(self):
        config = CamFXConfig(self.config_dir)

        config.set("transition_duration", "slow")
        self.assertEqual(config.transition_duration, 0.3)

        config.set("transition_duration", -1)
        self.assertEqual(config.transition_duration, 0.0)


if __name__ == '__main__':
    unittest.main()
