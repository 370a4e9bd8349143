"""Edge-preserving skin smoothing stage."""

import logging
from typing import Optional

import numpy as np

from . import operations as ops
from .operations import Operation, OperationError
from .types import (Degradation, StageResult, from_float, merge_alpha,
                    split_alpha, to_float)

logger = logging.getLogger(__name__)

COARSE_RADIUS_SCALE = 8.0
FINE_RADIUS_SCALE = 2.0

# (brightness, contrast) applied to luminance to build each blend mask
EDGE_MASK_CONTROLS = (-0.5, 2.0)
DETAIL_MASK_CONTROLS = (-0.2, 1.5)


def _luminance_mask(luma: np.ndarray, brightness: float, contrast: float) -> np.ndarray:
    return np.clip((luma + brightness - 0.5) * contrast + 0.5, 0.0, 1.0)


class SkinSmoothingStage:
    """Two-pass blur blended through luminance-derived masks.

    A coarse blur (radius ``intensity * 8``) removes blemishes and a fine blur
    (radius ``intensity * 2``) keeps texture. An edge mask built from
    contrast-boosted luminance picks between the two; a milder detail mask
    then blends the combined result back toward the original.
    """

    name = "smoothing"

    def smooth(self, frame: np.ndarray, intensity: float,
               mask: Optional[np.ndarray] = None) -> StageResult:
        """Smooth ``frame``.

        Args:
            frame: BGR or BGRA frame
            intensity: Smoothing amount in [0, 1]; 0 is a no-op
            mask: Optional foreground mask; when given, smoothing only
                  applies inside the foreground

        Returns:
            StageResult with the smoothed frame, or the input on failure
        """
        if intensity <= 0:
            return StageResult.skipped(frame)

        color, alpha = split_alpha(frame)
        original = to_float(color)

        try:
            coarse = ops.apply(Operation.GAUSSIAN_BLUR, original, sigma=intensity * COARSE_RADIUS_SCALE)
            fine = ops.apply(Operation.GAUSSIAN_BLUR, original, sigma=intensity * FINE_RADIUS_SCALE)

            luma = ops.apply(Operation.LUMINANCE, original)
            edge_mask = _luminance_mask(luma, *EDGE_MASK_CONTROLS)
            preserved = ops.apply(Operation.BLEND_WITH_MASK, coarse, background=fine, mask=edge_mask)

            detail_mask = _luminance_mask(luma, *DETAIL_MASK_CONTROLS)
            smoothed = ops.apply(Operation.BLEND_WITH_MASK, preserved, background=original, mask=detail_mask)

            if mask is not None:
                smoothed = ops.apply(Operation.BLEND_WITH_MASK, smoothed, background=original, mask=mask)
        except OperationError as e:
            logger.debug(f"Skin smoothing failed, passing frame through: {e}")
            return StageResult.degraded(frame, Degradation.STAGE_CONSTRUCTION_FAILURE)

        return StageResult.applied(merge_alpha(from_float(smoothed, frame.dtype), alpha))
