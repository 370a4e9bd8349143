"""Image operations used by the effect stages.

The operation set is closed: every operation is a member of ``Operation``
and maps to one pure ``(frame, **params) -> frame`` function. Color frames
are float32 BGR in [0, 1]; masks are float32 (H, W) in [0, 1].
"""

import logging
import math
from enum import Enum
from typing import Callable, Dict, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# BT.709 luma weights in BGR channel order
LUMA_BGR = np.array([0.0722, 0.7152, 0.2126], dtype=np.float32)

BASELINE_KELVIN = 6500.0
DEFAULT_SHARPEN_RADIUS = 1.69


class Operation(Enum):
    """Every image operation the pipeline can run."""

    GAUSSIAN_BLUR = "gaussian_blur"
    BLEND_WITH_MASK = "blend_with_mask"
    COLOR_CONTROLS = "color_controls"
    TEMPERATURE = "temperature"
    SHARPEN_LUMINANCE = "sharpen_luminance"
    LUMINANCE = "luminance"
    COVER_FIT = "cover_fit"
    FLIP_HORIZONTAL = "flip_horizontal"
    CROP = "crop"


class OperationError(Exception):
    """Raised when an operation cannot produce an output frame."""

    def __init__(self, operation: Operation, message: str):
        super().__init__(f"{operation.value}: {message}")
        self.operation = operation


def gaussian_blur(frame: np.ndarray, sigma: float) -> np.ndarray:
    """Gaussian blur with reflected borders, so the extent is unchanged."""
    if sigma <= 0:
        return frame
    return cv2.GaussianBlur(
        frame, (0, 0), sigmaX=float(sigma), sigmaY=float(sigma),
        borderType=cv2.BORDER_REFLECT_101
    )


def blend_with_mask(frame: np.ndarray, background: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Pixel-wise ``mask * frame + (1 - mask) * background``."""
    if frame.shape != background.shape:
        raise ValueError(f"Background shape {background.shape} does not match frame {frame.shape}")
    if mask.shape != frame.shape[:2]:
        raise ValueError(f"Mask shape {mask.shape} does not match frame extent {frame.shape[:2]}")

    weight = mask[:, :, np.newaxis] if frame.ndim == 3 else mask
    return frame * weight + background * (1.0 - weight)


def luminance(frame: np.ndarray) -> np.ndarray:
    """BT.709 luminance of a BGR frame as an (H, W) array."""
    return frame @ LUMA_BGR


def color_controls(
    frame: np.ndarray,
    brightness: float = 0.0,
    contrast: float = 1.0,
    saturation: float = 1.0
) -> np.ndarray:
    """Brightness offset, contrast around mid-gray, then saturation.

    Each adjustment is left out when its parameter is neutral.
    """
    result = frame
    if brightness != 0:
        result = result + brightness
    if contrast != 1:
        result = (result - 0.5) * contrast + 0.5
    if saturation != 1:
        luma = luminance(result)[:, :, np.newaxis]
        result = luma + (result - luma) * saturation
    return np.clip(result, 0.0, 1.0).astype(np.float32, copy=False)


def kelvin_to_rgb(kelvin: float) -> Tuple[float, float, float]:
    """Approximate RGB color (0-1) of a black body at ``kelvin``.

    Uses Tanner Helland's curve fit, valid from 1000K to 40000K.
    """
    temp = min(max(kelvin, 1000.0), 40000.0) / 100.0

    if temp <= 66:
        red = 255.0
        green = 99.4708025861 * math.log(temp) - 161.1195681661
    else:
        red = 329.698727446 * ((temp - 60) ** -0.1332047592)
        green = 288.1221695283 * ((temp - 60) ** -0.0755148492)

    if temp >= 66:
        blue = 255.0
    elif temp <= 19:
        blue = 0.0
    else:
        blue = 138.5177312231 * math.log(temp - 10) - 305.0447927307

    def clamp(value: float) -> float:
        return min(max(value, 0.0), 255.0) / 255.0

    return clamp(red), clamp(green), clamp(blue)


def white_balance_gains(neutral_kelvin: float, target_kelvin: float = BASELINE_KELVIN) -> np.ndarray:
    """Per-channel BGR gains mapping ``neutral_kelvin`` white to ``target_kelvin``.

    Gains are normalized to keep luminance constant. A neutral above the
    target warms the image, below it cools the image.
    """
    neutral = np.array(kelvin_to_rgb(neutral_kelvin)[::-1], dtype=np.float32)
    target = np.array(kelvin_to_rgb(target_kelvin)[::-1], dtype=np.float32)
    gains = target / np.maximum(neutral, 1e-6)
    return gains / float(gains @ LUMA_BGR)


def temperature(frame: np.ndarray, neutral_kelvin: float,
                target_kelvin: float = BASELINE_KELVIN) -> np.ndarray:
    gains = white_balance_gains(neutral_kelvin, target_kelvin)
    return np.clip(frame * gains, 0.0, 1.0).astype(np.float32, copy=False)


def sharpen_luminance(frame: np.ndarray, sharpness: float,
                      radius: float = DEFAULT_SHARPEN_RADIUS) -> np.ndarray:
    """Unsharp mask on luminance only, so colors do not fringe."""
    luma = luminance(frame)
    detail = luma - gaussian_blur(luma, radius)
    result = frame + sharpness * detail[:, :, np.newaxis]
    return np.clip(result, 0.0, 1.0).astype(np.float32, copy=False)


def cover_fit(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Scale uniformly and center-crop so ``image`` exactly fills width x height."""
    src_height, src_width = image.shape[:2]
    if src_width == 0 or src_height == 0:
        raise ValueError("Cannot fit an empty image")

    scale = max(width / src_width, height / src_height)
    scaled_width = max(width, int(math.ceil(src_width * scale - 1e-6)))
    scaled_height = max(height, int(math.ceil(src_height * scale - 1e-6)))

    if (scaled_width, scaled_height) != (src_width, src_height):
        interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
        image = cv2.resize(image, (scaled_width, scaled_height), interpolation=interpolation)

    x_offset = (scaled_width - width) // 2
    y_offset = (scaled_height - height) // 2
    return image[y_offset:y_offset + height, x_offset:x_offset + width]


def flip_horizontal(frame: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(frame[:, ::-1])


def crop(frame: np.ndarray, width: int, height: int) -> np.ndarray:
    """Crop to the top-left ``width x height`` region."""
    if frame.shape[1] < width or frame.shape[0] < height:
        raise ValueError(
            f"Frame {frame.shape[1]}x{frame.shape[0]} is smaller than {width}x{height}"
        )
    if frame.shape[1] == width and frame.shape[0] == height:
        return frame
    return frame[:height, :width]


_OPERATIONS: Dict[Operation, Callable[..., np.ndarray]] = {
    Operation.GAUSSIAN_BLUR: gaussian_blur,
    Operation.BLEND_WITH_MASK: blend_with_mask,
    Operation.COLOR_CONTROLS: color_controls,
    Operation.TEMPERATURE: temperature,
    Operation.SHARPEN_LUMINANCE: sharpen_luminance,
    Operation.LUMINANCE: luminance,
    Operation.COVER_FIT: cover_fit,
    Operation.FLIP_HORIZONTAL: flip_horizontal,
    Operation.CROP: crop,
}

_unmapped = set(Operation) - set(_OPERATIONS)
if _unmapped:
    raise RuntimeError(f"Operations without an implementation: {sorted(op.value for op in _unmapped)}")


def apply(operation: Operation, frame: np.ndarray, **params) -> np.ndarray:
    """Run ``operation`` on ``frame``.

    Args:
        operation: Operation to run
        frame: Input frame or mask
        **params: Operation parameters

    Returns:
        Output array

    Raises:
        OperationError: If the operation fails or produces no output
    """
    try:
        result = _OPERATIONS[operation](frame, **params)
    except (cv2.error, ValueError, TypeError, FloatingPointError) as e:
        raise OperationError(operation, str(e)) from e

    if result is None or result.size == 0:
        raise OperationError(operation, "produced no output")
    return result
