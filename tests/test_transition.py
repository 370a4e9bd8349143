"""Tests for settings transitions."""

import unittest
from unittest.mock import patch

import numpy as np

from camfx.core.transition import SettingsTransition
from camfx.core.types import BackgroundMode, Settings
from camfx.presets import default_presets


class TestSettingsTransition(unittest.TestCase):
    """Test SettingsTransition."""

    def setUp(self):
        self.start = Settings(brightness=0.0, contrast=1.0, warmth=-0.5)
        self.end = Settings(
            brightness=0.4,
            contrast=1.5,
            warmth=0.5,
            background_mode=BackgroundMode.LIGHT_BLUR,
            mirror_video=False
        )
        self.transition = SettingsTransition(self.start, self.end, duration=1.0).start(now=10.0)

    def test_endpoints(self):
        """Test exact start and end settings."""
        self.assertEqual(self.transition.current_settings(10.0), self.start)
        self.assertIs(self.transition.current_settings(11.0), self.end)
        self.assertIs(self.transition.current_settings(25.0), self.end)
        self.assertTrue(self.transition.is_complete(11.0))
        self.assertFalse(self.transition.is_complete(10.99))

    def test_linear_interpolation(self):
        halfway = self.transition.current_settings(10.5)

        self.assertAlmostEqual(halfway.brightness, 0.2)
        self.assertAlmostEqual(halfway.contrast, 1.25)
        self.assertAlmostEqual(halfway.warmth, 0.0)

    def test_monotonic_scalars(self):
        """Test that scalars move monotonically from start to end."""
        samples = [self.transition.current_settings(t).brightness for t in np.linspace(10.0, 11.0, 21)]

        self.assertEqual(samples, sorted(samples))
        for value in samples:
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 0.4)

    def test_discrete_fields_switch_halfway(self):
        """Test that mode and mirroring switch at the midpoint."""
        before = self.transition.current_settings(10.49)
        after = self.transition.current_settings(10.5)

        self.assertEqual(before.background_mode, BackgroundMode.NONE)
        self.assertTrue(before.mirror_video)
        self.assertEqual(after.background_mode, BackgroundMode.LIGHT_BLUR)
        self.assertFalse(after.mirror_video)

    def test_images_follow_mode(self):
        image = np.zeros((4, 4, 3), dtype=np.uint8)
        end = Settings(background_mode=BackgroundMode.CUSTOM).with_background_image(BackgroundMode.CUSTOM, image)
        transition = SettingsTransition(Settings(), end, duration=1.0).start(now=0.0)

        self.assertIsNone(transition.current_settings(0.2).custom_background)
        self.assertIs(transition.current_settings(0.7).custom_background, image)

    def test_time_before_start_clamps(self):
        self.assertEqual(self.transition.progress(5.0), 0.0)
        self.assertEqual(self.transition.current_settings(5.0), self.start)

    def test_unstarted_transition_is_complete(self):
        transition = SettingsTransition(self.start, self.end)

        self.assertFalse(transition.started)
        self.assertIsNone(transition.state)
        self.assertIs(transition.current_settings(), self.end)

    def test_start_twice(self):
        with self.assertRaises(RuntimeError):
            self.transition.start(now=12.0)

    def test_zero_duration(self):
        transition = SettingsTransition(self.start, self.end, duration=0).start(now=0.0)
        self.assertIs(transition.current_settings(0.0), self.end)

    def test_state(self):
        state = self.transition.state

        self.assertEqual(state.start_time, 10.0)
        self.assertEqual(state.duration, 1.0)
        self.assertIs(state.end_settings, self.end)

    @patch('camfx.core.transition.time.monotonic')
    def test_uses_monotonic_clock(self, mock_monotonic):
        mock_monotonic.return_value = 100.0
        transition = SettingsTransition(self.start, self.end, duration=1.0).start()

        mock_monotonic.return_value = 100.25
        self.assertAlmostEqual(transition.progress(), 0.25)


class TestPresetTransitionScenario(unittest.TestCase):
    """Switching from "No Effect" to "Strong Blur" over 0.3 seconds."""

    def setUp(self):
        presets = {preset.name: preset for preset in default_presets()}
        self.none = presets["No Effect"].effective_settings()
        self.blur = presets["Strong Blur"].effective_settings()
        self.transition = SettingsTransition(self.none, self.blur, duration=0.3).start(now=0.0)

    def test_first_third(self):
        settings = self.transition.current_settings(0.1)

        self.assertEqual(settings.background_mode, BackgroundMode.NONE)
        self.assertAlmostEqual(settings.skin_smoothing_amount, 0.1)
        self.assertAlmostEqual(settings.brightness, 0.1 / 3)

    def test_second_third(self):
        settings = self.transition.current_settings(0.2)

        self.assertEqual(settings.background_mode, BackgroundMode.STRONG_BLUR)
        self.assertAlmostEqual(settings.skin_smoothing_amount, 0.2)
        self.assertAlmostEqual(settings.contrast, 1.0 + 0.1 * 2 / 3)

    def test_complete(self):
        self.assertIs(self.transition.current_settings(0.31), self.blur)


if __name__ == '__main__':
    unittest.main()
