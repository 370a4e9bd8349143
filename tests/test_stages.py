"""Tests for the smoothing, background and color stages."""

import unittest

import numpy as np

from camfx.core.color import ColorAdjustmentStage
from camfx.core.compositor import BackgroundCompositor
from camfx.core.operations import Operation
from camfx.core.smoothing import SkinSmoothingStage
from camfx.core.types import (BackgroundMode, Degradation, Settings,
                              StageStatus, to_float)


def noisy_frame(height: int = 24, width: int = 32, seed: int = 0) -> np.ndarray:
    rng = np.random.RandomState(seed)
    return rng.randint(100, 157, size=(height, width, 3)).astype(np.uint8)


class TestColorAdjustmentStage(unittest.TestCase):
    """Test ColorAdjustmentStage."""

    def setUp(self):
        self.stage = ColorAdjustmentStage()
        self.gray = np.full((100, 100, 3), 128, dtype=np.uint8)

    def test_neutral_settings_skip(self):
        """Test that neutral settings return the input frame itself."""
        result = self.stage.apply(self.gray, Settings())

        self.assertEqual(result.status, StageStatus.SKIPPED)
        self.assertIs(result.frame, self.gray)

    def test_brightness_brightens(self):
        result = self.stage.apply(self.gray, Settings(brightness=0.2))

        self.assertEqual(result.status, StageStatus.APPLIED)
        self.assertEqual(result.frame.dtype, np.uint8)
        self.assertEqual(result.frame.shape, self.gray.shape)
        self.assertGreater(result.frame.mean(), self.gray.mean())
        self.assertAlmostEqual(float(result.frame.mean()), 128 + 0.2 * 255, delta=1.0)

    def test_plan_order(self):
        """Test that only non-neutral adjustments run, in fixed order."""
        settings = Settings(sharpness=0.5, warmth=0.3, brightness=0.1)
        operations = [operation for operation, _ in self.stage.plan(settings)]

        self.assertEqual(operations, [Operation.COLOR_CONTROLS, Operation.TEMPERATURE,
                                      Operation.SHARPEN_LUMINANCE])
        self.assertEqual(self.stage.plan(Settings()), [])

    def test_warmth(self):
        """Test that positive warmth raises red relative to blue."""
        warm = self.stage.apply(self.gray, Settings(warmth=1.0)).frame.astype(np.int32)
        cool = self.stage.apply(self.gray, Settings(warmth=-1.0)).frame.astype(np.int32)

        self.assertGreater(warm[:, :, 2].mean(), warm[:, :, 0].mean())
        self.assertLess(cool[:, :, 2].mean(), cool[:, :, 0].mean())

    def test_alpha_preserved(self):
        frame = np.full((10, 10, 4), 128, dtype=np.uint8)
        frame[:, :, 3] = 77

        result = self.stage.apply(frame, Settings(contrast=1.5, saturation=0.5))

        self.assertEqual(result.frame.shape, (10, 10, 4))
        np.testing.assert_array_equal(result.frame[:, :, 3], 77)

    def test_float_frame(self):
        frame = np.full((10, 10, 3), 0.5, dtype=np.float32)
        result = self.stage.apply(frame, Settings(brightness=-0.25))

        self.assertEqual(result.frame.dtype, np.float32)
        np.testing.assert_allclose(result.frame, 0.25, atol=1e-6)


class TestSkinSmoothingStage(unittest.TestCase):
    """Test SkinSmoothingStage."""

    def setUp(self):
        self.stage = SkinSmoothingStage()
        self.frame = noisy_frame()

    def test_zero_intensity_skips(self):
        result = self.stage.smooth(self.frame, 0.0)

        self.assertEqual(result.status, StageStatus.SKIPPED)
        self.assertIs(result.frame, self.frame)

    def test_smoothing_reduces_noise(self):
        result = self.stage.smooth(self.frame, 0.8)

        self.assertEqual(result.status, StageStatus.APPLIED)
        self.assertEqual(result.frame.shape, self.frame.shape)
        self.assertEqual(result.frame.dtype, np.uint8)
        self.assertLess(result.frame.astype(np.float32).std(), self.frame.astype(np.float32).std())

    def test_mask_limits_smoothing(self):
        """Test that pixels outside the mask are untouched."""
        mask = np.zeros(self.frame.shape[:2], dtype=np.float32)
        mask[:, :16] = 1.0

        result = self.stage.smooth(self.frame, 0.8, mask)

        np.testing.assert_array_equal(result.frame[:, 16:], self.frame[:, 16:])
        self.assertFalse(np.array_equal(result.frame[:, :16], self.frame[:, :16]))


class TestBackgroundCompositor(unittest.TestCase):
    """Test BackgroundCompositor."""

    def setUp(self):
        self.compositor = BackgroundCompositor()
        self.frame = noisy_frame()
        self.foreground = np.ones(self.frame.shape[:2], dtype=np.float32)
        self.background_only = np.zeros(self.frame.shape[:2], dtype=np.float32)

    def test_mode_none_skips(self):
        result = self.compositor.render(self.frame, Settings(), self.foreground)

        self.assertEqual(result.status, StageStatus.SKIPPED)
        self.assertIs(result.frame, self.frame)

    def test_missing_mask(self):
        """Test pass-through when segmentation produced no mask."""
        settings = Settings(background_mode=BackgroundMode.STRONG_BLUR)
        result = self.compositor.render(self.frame, settings, None)

        self.assertEqual(result.status, StageStatus.DEGRADED)
        self.assertEqual(result.reason, Degradation.SEGMENTATION_UNAVAILABLE)
        self.assertIs(result.frame, self.frame)

    def test_missing_image(self):
        """Test pass-through when an image mode has no image."""
        settings = Settings(background_mode=BackgroundMode.CUSTOM)
        result = self.compositor.render(self.frame, settings, self.foreground)

        self.assertEqual(result.reason, Degradation.BACKGROUND_ASSET_MISSING)
        self.assertIs(result.frame, self.frame)

    def test_blur_background(self):
        settings = Settings(background_mode=BackgroundMode.LIGHT_BLUR)

        kept = self.compositor.render(self.frame, settings, self.foreground)
        np.testing.assert_array_equal(kept.frame, self.frame)

        blurred = self.compositor.render(self.frame, settings, self.background_only)
        self.assertEqual(blurred.status, StageStatus.APPLIED)
        self.assertLess(blurred.frame.astype(np.float32).std(), self.frame.astype(np.float32).std())

    def test_replacement_image(self):
        """Test that the replacement image is cover-fit behind the person."""
        image = np.zeros((10, 20, 3), dtype=np.uint8)
        image[:, :] = (255, 0, 0)
        settings = Settings(background_mode=BackgroundMode.INCLUDED1)
        settings = settings.with_background_image(BackgroundMode.INCLUDED1, image)

        mask = self.background_only.copy()
        mask[:, :8] = 1.0
        result = self.compositor.render(self.frame, settings, mask)

        self.assertEqual(result.frame.shape, self.frame.shape)
        np.testing.assert_array_equal(result.frame[:, :8], self.frame[:, :8])
        np.testing.assert_array_equal(result.frame[:, 8:], np.broadcast_to([255, 0, 0], (24, 24, 3)))

    def test_background_cache(self):
        image = np.full((10, 10, 3), 50, dtype=np.uint8)
        settings = Settings(background_mode=BackgroundMode.CUSTOM)
        settings = settings.with_background_image(BackgroundMode.CUSTOM, image)
        source = to_float(self.frame)

        first = self.compositor.background_for(source, settings)
        second = self.compositor.background_for(source, settings)

        self.assertIs(first, second)
        self.assertTrue(self.compositor.has_cached_background)

        self.compositor.invalidate()
        self.assertFalse(self.compositor.has_cached_background)

    def test_new_image_same_mode_refits(self):
        """Test that a different image for the same mode and extent is not served from the cache."""
        source = to_float(self.frame)
        for value in (0, 255, 0, 255):
            settings = None
            settings = Settings(background_mode=BackgroundMode.CUSTOM).with_background_image(
                BackgroundMode.CUSTOM, np.full((10, 10, 3), value, dtype=np.uint8))

            background = self.compositor.background_for(source, settings)

            np.testing.assert_allclose(background, value / 255.0)


if __name__ == '__main__':
    unittest.main()
