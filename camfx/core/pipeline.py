"""Per-frame effect pipeline."""

import logging
from typing import Optional, Tuple

import numpy as np

from . import operations as ops
from .color import ColorAdjustmentStage
from .compositor import BackgroundCompositor
from .operations import Operation, OperationError
from .segmentation import NullSegmenter, SegmentationProvider, align_mask
from .smoothing import SkinSmoothingStage
from .types import (BackgroundMode, FrameReport, Settings, extent,
                    validate_frame)

logger = logging.getLogger(__name__)


class EffectPipeline:
    """Turn a raw camera frame and a settings snapshot into an output frame.

    Stage order is fixed:

    1. Skip segmentation entirely when the background mode is NONE.
    2. Otherwise request a foreground mask.
    3. Mirror the frame and mask together when ``mirror_video`` is set.
    4. Skin smoothing (inside the mask when there is one).
    5. Background compositing (mode set and mask present).
    6. Color adjustment.
    7. Crop to the input extent.

    No stage failure escapes ``process``; the worst case is the input frame.
    One instance serves one caller with one frame in flight at a time.
    """

    def __init__(self, segmenter: Optional[SegmentationProvider] = None):
        """Initialize the pipeline.

        Args:
            segmenter: Foreground segmentation provider (defaults to one that
                       never returns a mask)
        """
        self.segmenter = segmenter or NullSegmenter()
        self.smoothing = SkinSmoothingStage()
        self.compositor = BackgroundCompositor()
        self.color = ColorAdjustmentStage()
        self._last_mode: Optional[BackgroundMode] = None

    def invalidate_cache(self) -> None:
        """Forget any derived background (call when a preset is selected)."""
        self.compositor.invalidate()
        self._last_mode = None

    def process(self, frame: np.ndarray, settings: Settings) -> np.ndarray:
        """Process one frame.

        Args:
            frame: BGR or BGRA frame, uint8 or float32
            settings: Settings snapshot for this frame

        Returns:
            Processed frame with the input's extent, channels and dtype
        """
        result, _ = self.process_with_report(frame, settings)
        return result

    def process_with_report(self, frame: np.ndarray,
                            settings: Settings) -> Tuple[np.ndarray, FrameReport]:
        """Process one frame and report what each stage did.

        Raises:
            ValueError: If ``frame`` is not a BGR/BGRA pixel buffer
        """
        validate_frame(frame)
        width, height = extent(frame)
        report = FrameReport()

        mode = settings.background_mode
        if mode != self._last_mode:
            if self._last_mode is not None:
                self.compositor.invalidate()
            self._last_mode = mode

        mask = None
        if mode.requires_mask:
            report.segmentation_invoked = True
            mask = self._segment(frame)
            report.mask_available = mask is not None

        working = frame
        if settings.mirror_video:
            working, mask = self._mirror(working, mask)

        result = self.smoothing.smooth(working, settings.skin_smoothing_amount, mask)
        report.stages[self.smoothing.name] = result
        working = result.frame

        result = self.compositor.render(working, settings, mask)
        report.stages[self.compositor.name] = result
        working = result.frame

        result = self.color.apply(working, settings)
        report.stages[self.color.name] = result
        working = result.frame

        for stage, reason in report.degradations.items():
            logger.debug(f"Stage '{stage}' degraded: {reason.value}")

        return self._crop(working, frame, width, height), report

    def _segment(self, frame: np.ndarray) -> Optional[np.ndarray]:
        try:
            raw = self.segmenter.segment(frame)
        except Exception as e:
            logger.debug(f"Segmentation failed, continuing without a mask: {e}")
            return None
        return align_mask(raw, frame)

    def _mirror(self, frame: np.ndarray,
                mask: Optional[np.ndarray]) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        try:
            mirrored = ops.apply(Operation.FLIP_HORIZONTAL, frame)
            mirrored_mask = ops.apply(Operation.FLIP_HORIZONTAL, mask) if mask is not None else None
        except OperationError as e:
            logger.debug(f"Mirroring failed, keeping orientation: {e}")
            return frame, mask
        return mirrored, mirrored_mask

    def _crop(self, result: np.ndarray, original: np.ndarray, width: int, height: int) -> np.ndarray:
        try:
            return ops.apply(Operation.CROP, result, width=width, height=height)
        except OperationError as e:
            logger.debug(f"Output smaller than input, returning input: {e}")
            return original

