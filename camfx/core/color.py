"""Color adjustment stage."""

import logging
from typing import List, Tuple

import numpy as np

from . import operations as ops
from .operations import Operation, OperationError
from .types import (Degradation, Settings, StageResult, from_float, merge_alpha,
                    split_alpha, to_float)

logger = logging.getLogger(__name__)

WARMTH_KELVIN_PER_UNIT = 1000.0


class ColorAdjustmentStage:
    """Brightness, contrast, saturation, warmth and sharpness, in that order.

    Any adjustment whose parameter sits at its neutral value is skipped, and
    a fully neutral settings value returns the input frame untouched.
    """

    name = "color"

    def plan(self, settings: Settings) -> List[Tuple[Operation, dict]]:
        """Operations this stage would run for ``settings``, in order."""
        steps = []
        if settings.brightness != 0:
            steps.append((Operation.COLOR_CONTROLS, {"brightness": settings.brightness}))
        if settings.contrast != 1:
            steps.append((Operation.COLOR_CONTROLS, {"contrast": settings.contrast}))
        if settings.saturation != 1:
            steps.append((Operation.COLOR_CONTROLS, {"saturation": settings.saturation}))
        if settings.warmth != 0:
            neutral = ops.BASELINE_KELVIN + settings.warmth * WARMTH_KELVIN_PER_UNIT
            steps.append((Operation.TEMPERATURE, {"neutral_kelvin": neutral}))
        if settings.sharpness != 0:
            steps.append((Operation.SHARPEN_LUMINANCE, {"sharpness": settings.sharpness}))
        return steps

    def apply(self, frame: np.ndarray, settings: Settings) -> StageResult:
        """Apply the color adjustments for ``settings`` to ``frame``.

        Args:
            frame: BGR or BGRA frame
            settings: Settings snapshot

        Returns:
            StageResult with the adjusted frame, or the input on failure
        """
        steps = self.plan(settings)
        if not steps:
            return StageResult.skipped(frame)

        color, alpha = split_alpha(frame)
        result = to_float(color)
        try:
            for operation, params in steps:
                result = ops.apply(operation, result, **params)
        except OperationError as e:
            logger.debug(f"Color adjustment failed, passing frame through: {e}")
            return StageResult.degraded(frame, Degradation.STAGE_CONSTRUCTION_FAILURE)

        return StageResult.applied(merge_alpha(from_float(result, frame.dtype), alpha))
