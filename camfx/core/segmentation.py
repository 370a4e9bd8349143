"""Foreground segmentation providers.

The pipeline treats segmentation as an opaque, synchronous call that may
return None. Providers here adapt common mask sources to that contract.
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class SegmentationProvider:
    """Base class for foreground segmentation."""

    def segment(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Return a foreground mask for ``frame``, or None.

        The mask may be any resolution and either uint8 (0-255) or float
        (0-1); the pipeline aligns it to the frame.
        """
        raise NotImplementedError


class NullSegmenter(SegmentationProvider):
    """Provider that never finds a foreground."""

    def segment(self, frame: np.ndarray) -> Optional[np.ndarray]:
        return None


class CallableSegmenter(SegmentationProvider):
    """Wrap a plain ``frame -> mask`` function."""

    def __init__(self, func: Callable[[np.ndarray], Optional[np.ndarray]]):
        self.func = func

    def segment(self, frame: np.ndarray) -> Optional[np.ndarray]:
        return self.func(frame)


class StaticMaskSegmenter(SegmentationProvider):
    """Return the same mask for every frame, e.g. one loaded from disk."""

    def __init__(self, mask: np.ndarray):
        self.mask = mask

    @classmethod
    def from_file(cls, mask_path: Union[str, Path]) -> "StaticMaskSegmenter":
        """Load a grayscale mask image.

        Raises:
            FileNotFoundError: If the mask cannot be read
        """
        mask = cv2.imread(str(mask_path), cv2.IMREAD_GRAYSCALE)
        if mask is None:
            raise FileNotFoundError(f"Could not read mask image: {mask_path}")
        logger.info(f"Loaded static mask {mask_path} ({mask.shape[1]}x{mask.shape[0]})")
        return cls(mask)

    def segment(self, frame: np.ndarray) -> Optional[np.ndarray]:
        return self.mask


class DnnSegmenter(SegmentationProvider):
    """Person segmentation through an ONNX model loaded with ``cv2.dnn``.

    The model must take one RGB image and output a single-channel (or
    two-channel background/person) probability map. Logits are passed
    through a sigmoid.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        input_size: Tuple[int, int] = (256, 256),
        mean: Tuple[float, float, float] = (0.0, 0.0, 0.0),
        scale: float = 1.0 / 255.0
    ):
        """Initialize the segmenter.

        Args:
            model_path: Path to the ONNX model
            input_size: Model input (width, height)
            mean: Per-channel mean subtracted before scaling
            scale: Pixel scale factor
        """
        self.model_path = Path(model_path)
        self.input_size = tuple(input_size)
        self.mean = mean
        self.scale = scale
        self._net = None

        if not self.model_path.exists():
            raise FileNotFoundError(f"Segmentation model not found: {self.model_path}")

    def _load(self):
        if self._net is None:
            logger.info(f"Loading segmentation model: {self.model_path}")
            self._net = cv2.dnn.readNetFromONNX(str(self.model_path))
        return self._net

    def segment(self, frame: np.ndarray) -> Optional[np.ndarray]:
        net = self._load()

        image = frame[:, :, :3]
        if image.dtype != np.uint8:
            image = np.rint(np.clip(image, 0.0, 1.0) * 255.0).astype(np.uint8)

        blob = cv2.dnn.blobFromImage(
            image, scalefactor=self.scale, size=self.input_size,
            mean=self.mean, swapRB=True, crop=False
        )
        net.setInput(blob)
        output = np.squeeze(net.forward())

        if output.ndim == 3:
            # (classes, H, W): last channel is the person class
            output = output[-1]
        if output.ndim != 2:
            logger.debug(f"Unexpected segmentation output shape: {output.shape}")
            return None

        output = output.astype(np.float32)
        if output.min() < 0.0 or output.max() > 1.0:
            output = 1.0 / (1.0 + np.exp(-output))
        return output


def align_mask(mask: Optional[np.ndarray], frame: np.ndarray) -> Optional[np.ndarray]:
    """Convert a provider mask to float32 [0, 1] at the frame's extent.

    Args:
        mask: Raw provider output, or None
        frame: Frame the mask belongs to

    Returns:
        Aligned (H, W) float32 mask, or None when no usable mask exists
    """
    if mask is None:
        return None

    mask = np.asarray(mask)
    if mask.ndim == 3:
        mask = mask[:, :, 0]
    if mask.ndim != 2 or mask.size == 0:
        logger.debug(f"Ignoring mask with shape {mask.shape}")
        return None

    if mask.dtype == np.uint8:
        mask = mask.astype(np.float32) / 255.0
    else:
        mask = mask.astype(np.float32)

    height, width = frame.shape[:2]
    if mask.shape != (height, width):
        mask = cv2.resize(mask, (width, height), interpolation=cv2.INTER_LINEAR)

    return np.clip(mask, 0.0, 1.0)
