"""Background compositing stage."""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from . import operations as ops
from .operations import Operation, OperationError
from .types import (BackgroundMode, Degradation, Settings, StageResult, extent,
                    from_float, merge_alpha, split_alpha, to_float)

logger = logging.getLogger(__name__)

BLUR_SIGMAS = {
    BackgroundMode.LIGHT_BLUR: 10.0,
    BackgroundMode.STRONG_BLUR: 20.0,
}


def prepare_background(image: np.ndarray) -> np.ndarray:
    """Normalize a replacement image to float32 BGR."""
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.shape[2] == 4:
        image = image[:, :, :3]
    return to_float(np.ascontiguousarray(image))


class BackgroundCompositor:
    """Blend the source over a blurred or replaced background using a mask.

    The cover-fit replacement background is cached per (mode, image, extent)
    so a still image is only rescaled once per preset. The cache holds the
    source image itself and matches it by identity.
    """

    name = "background"

    def __init__(self):
        self._cache_key: Optional[Tuple] = None
        self._cached_source: Optional[np.ndarray] = None
        self._cached_background: Optional[np.ndarray] = None

    def invalidate(self) -> None:
        """Drop the cached background."""
        if self._cache_key is not None:
            logger.debug("Background cache invalidated")
        self._cache_key = None
        self._cached_source = None
        self._cached_background = None

    @property
    def has_cached_background(self) -> bool:
        return self._cached_background is not None

    def composite(self, source: np.ndarray, background: np.ndarray, mask: np.ndarray) -> np.ndarray:
        """``mask * source + (1 - mask) * background`` on float frames."""
        return ops.apply(Operation.BLEND_WITH_MASK, source, background=background, mask=mask)

    def background_for(self, source: np.ndarray, settings: Settings) -> Optional[np.ndarray]:
        """Derive the float background for ``source`` under ``settings``.

        Args:
            source: Float32 BGR source frame
            settings: Settings snapshot

        Returns:
            Background frame, or None when the mode needs an image that is
            not loaded

        Raises:
            OperationError: If blurring or scaling fails
        """
        mode = settings.background_mode
        if mode in BLUR_SIGMAS:
            return ops.apply(Operation.GAUSSIAN_BLUR, source, sigma=BLUR_SIGMAS[mode])

        image = settings.background_image(mode)
        if image is None:
            return None

        width, height = extent(source)
        key = (mode, width, height)
        if image is not self._cached_source or key != self._cache_key:
            fitted = ops.apply(Operation.COVER_FIT, image, width=width, height=height)
            self._cached_background = prepare_background(fitted)
            self._cache_key = key
            self._cached_source = image
            logger.debug(f"Cached {mode.value} background at {width}x{height}")
        return self._cached_background

    def render(self, frame: np.ndarray, settings: Settings,
               mask: Optional[np.ndarray]) -> StageResult:
        """Apply the background effect selected in ``settings``.

        Args:
            frame: BGR or BGRA frame
            settings: Settings snapshot
            mask: Foreground mask aligned to ``frame``, or None

        Returns:
            StageResult; the input frame is passed through when the mask or
            the background image is missing, or when an operation fails
        """
        if settings.background_mode is BackgroundMode.NONE:
            return StageResult.skipped(frame)
        if mask is None:
            return StageResult.degraded(frame, Degradation.SEGMENTATION_UNAVAILABLE)

        color, alpha = split_alpha(frame)
        source = to_float(color)

        try:
            background = self.background_for(source, settings)
            if background is None:
                logger.debug(f"No image loaded for {settings.background_mode.value}, passing frame through")
                return StageResult.degraded(frame, Degradation.BACKGROUND_ASSET_MISSING)
            result = self.composite(source, background, mask)
        except OperationError as e:
            logger.debug(f"Background compositing failed, passing frame through: {e}")
            return StageResult.degraded(frame, Degradation.STAGE_CONSTRUCTION_FAILURE)

        return StageResult.applied(merge_alpha(from_float(result, frame.dtype), alpha))
