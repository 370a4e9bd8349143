"""Shared value types for the effect pipeline."""

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class BackgroundMode(Enum):
    """Background treatment applied behind the segmented person.

    Values are the strings used in persisted settings and preset records.
    """

    NONE = "none"
    LIGHT_BLUR = "lightBlur"
    STRONG_BLUR = "blur"
    CUSTOM = "custom"
    INCLUDED1 = "included1"
    INCLUDED2 = "included2"
    INCLUDED3 = "included3"

    @property
    def display_name(self) -> str:
        """Human readable name."""
        return _DISPLAY_NAMES[self]

    @property
    def requires_mask(self) -> bool:
        return self is not BackgroundMode.NONE

    @property
    def requires_image(self) -> bool:
        return self in _IMAGE_FIELDS

    @classmethod
    def from_name(cls, name: str) -> "BackgroundMode":
        """Look up a mode by record value, enum name or display name.

        Raises:
            ValueError: If the name matches no mode
        """
        key = name.strip()
        for mode in cls:
            if key in (mode.value, mode.name, mode.display_name) or key.lower() == mode.name.lower():
                return mode
        raise ValueError(f"Unknown background mode: {name}")


_DISPLAY_NAMES = {
    BackgroundMode.NONE: "None",
    BackgroundMode.LIGHT_BLUR: "Light Blur",
    BackgroundMode.STRONG_BLUR: "Strong Blur",
    BackgroundMode.CUSTOM: "Custom",
    BackgroundMode.INCLUDED1: "Background 1",
    BackgroundMode.INCLUDED2: "Background 2",
    BackgroundMode.INCLUDED3: "Background 3",
}

# Settings field holding the replacement image for each image mode
_IMAGE_FIELDS = {
    BackgroundMode.CUSTOM: "custom_background",
    BackgroundMode.INCLUDED1: "included1_background",
    BackgroundMode.INCLUDED2: "included2_background",
    BackgroundMode.INCLUDED3: "included3_background",
}

SCALAR_FIELDS = (
    "skin_smoothing_amount",
    "brightness",
    "contrast",
    "saturation",
    "warmth",
    "sharpness",
)

IMAGE_FIELDS = tuple(_IMAGE_FIELDS.values())

# Persisted record key for each scalar field
_RECORD_KEYS = {
    "skin_smoothing_amount": "skinSmoothingAmount",
    "brightness": "brightness",
    "contrast": "contrast",
    "saturation": "saturation",
    "warmth": "warmth",
    "sharpness": "sharpness",
}

_RANGES = {
    "skin_smoothing_amount": (0.0, 1.0),
    "brightness": (-1.0, 1.0),
    "contrast": (0.0, 2.0),
    "saturation": (0.0, 2.0),
    "warmth": (-1.0, 1.0),
    "sharpness": (0.0, 1.0),
}


def _image_field(default=None):
    return field(default=default, compare=False, repr=False)


@dataclass(frozen=True)
class Settings:
    """Snapshot of every user-facing effect parameter.

    Settings is a value: it is never modified in place, and equality only
    looks at the scalar, enum and bool fields. Background images ride along
    for the pipeline but take no part in comparison or persistence.
    """

    skin_smoothing_amount: float = 0.0
    brightness: float = 0.0
    contrast: float = 1.0
    saturation: float = 1.0
    warmth: float = 0.0
    sharpness: float = 0.0
    background_mode: BackgroundMode = BackgroundMode.NONE
    mirror_video: bool = True

    custom_background: Optional[np.ndarray] = _image_field()
    included1_background: Optional[np.ndarray] = _image_field()
    included2_background: Optional[np.ndarray] = _image_field()
    included3_background: Optional[np.ndarray] = _image_field()

    def replace(self, **changes: Any) -> "Settings":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def background_image(self, mode: Optional[BackgroundMode] = None) -> Optional[np.ndarray]:
        """Replacement image for ``mode`` (defaults to the current mode)."""
        mode = mode or self.background_mode
        name = _IMAGE_FIELDS.get(mode)
        return getattr(self, name) if name else None

    def with_background_image(self, mode: BackgroundMode, image: Optional[np.ndarray]) -> "Settings":
        """Return a copy with ``image`` attached to ``mode``'s slot.

        Raises:
            ValueError: If the mode does not use a replacement image
        """
        if mode not in _IMAGE_FIELDS:
            raise ValueError(f"Background mode '{mode.value}' does not use an image")
        return self.replace(**{_IMAGE_FIELDS[mode]: image})

    def images(self) -> Dict[str, Optional[np.ndarray]]:
        return {name: getattr(self, name) for name in IMAGE_FIELDS}

    def is_neutral_color(self) -> bool:
        """True when no color adjustment would change a frame."""
        return (
            self.brightness == 0
            and self.contrast == 1
            and self.saturation == 1
            and self.warmth == 0
            and self.sharpness == 0
        )

    def validate(self) -> None:
        """Validate parameter ranges.

        Raises:
            ValueError: If any value is out of range
        """
        for name, (low, high) in _RANGES.items():
            value = getattr(self, name)
            if not low <= value <= high:
                raise ValueError(f"{name} must be {low}-{high}, got {value}")
        if not isinstance(self.background_mode, BackgroundMode):
            raise ValueError(f"Invalid background mode: {self.background_mode!r}")

    def to_record(self) -> Dict[str, Any]:
        """Encode as a persisted settings record. Images are not included."""
        record = {key: float(getattr(self, name)) for name, key in _RECORD_KEYS.items()}
        record["backgroundPreset"] = self.background_mode.value
        record["mirrorVideo"] = bool(self.mirror_video)
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Settings":
        """Decode a persisted settings record.

        Raises:
            ValueError: If a field is missing or invalid
        """
        missing = [key for key in list(_RECORD_KEYS.values()) + ["backgroundPreset", "mirrorVideo"]
                   if key not in record]
        if missing:
            raise ValueError(f"Settings record missing fields: {', '.join(missing)}")

        try:
            values = {name: float(record[key]) for name, key in _RECORD_KEYS.items()}
            mode = BackgroundMode(record["backgroundPreset"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid settings record: {e}")

        settings = cls(background_mode=mode, mirror_video=bool(record["mirrorVideo"]), **values)
        settings.validate()
        return settings


@dataclass(frozen=True)
class Preset:
    """Named bundle of a background mode and a full settings snapshot."""

    name: str
    mode: BackgroundMode
    settings: Settings = field(default_factory=Settings)
    image_path: Optional[str] = None

    def effective_settings(self) -> Settings:
        """Preset settings with the preset's mode applied."""
        return self.settings.replace(background_mode=self.mode)

    def to_record(self) -> Dict[str, Any]:
        record = {
            "name": self.name,
            "type": self.mode.value,
            "settings": self.settings.to_record(),
        }
        if self.image_path is not None:
            record["imagePath"] = self.image_path
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Preset":
        """Decode a persisted preset record.

        Raises:
            ValueError: If the record is malformed
        """
        try:
            name = record["name"]
            mode = BackgroundMode(record["type"])
            settings = Settings.from_record(record["settings"])
        except KeyError as e:
            raise ValueError(f"Preset record missing field: {e}")
        return cls(name=str(name), mode=mode, settings=settings, image_path=record.get("imagePath"))


class Degradation(Enum):
    """Reason a stage fell back to passing its input through."""

    SEGMENTATION_UNAVAILABLE = "segmentation_unavailable"
    BACKGROUND_ASSET_MISSING = "background_asset_missing"
    STAGE_CONSTRUCTION_FAILURE = "stage_construction_failure"


class StageStatus(Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    DEGRADED = "degraded"


@dataclass
class StageResult:
    """Frame produced by a stage plus how it was produced.

    ``SKIPPED`` is a designed no-op (neutral parameter, nothing to do);
    ``DEGRADED`` is an unexpected pass-through and carries a reason.
    """

    frame: np.ndarray
    status: StageStatus = StageStatus.APPLIED
    reason: Optional[Degradation] = None

    @classmethod
    def applied(cls, frame: np.ndarray) -> "StageResult":
        return cls(frame, StageStatus.APPLIED)

    @classmethod
    def skipped(cls, frame: np.ndarray) -> "StageResult":
        return cls(frame, StageStatus.SKIPPED)

    @classmethod
    def degraded(cls, frame: np.ndarray, reason: Degradation) -> "StageResult":
        return cls(frame, StageStatus.DEGRADED, reason)

    @property
    def is_degraded(self) -> bool:
        return self.status is StageStatus.DEGRADED


@dataclass
class FrameReport:
    """Per-frame record of what each pipeline stage did."""

    segmentation_invoked: bool = False
    mask_available: bool = False
    stages: Dict[str, StageResult] = field(default_factory=dict)

    @property
    def degradations(self) -> Dict[str, Degradation]:
        """Stage name to degradation reason, for degraded stages only."""
        return {name: result.reason for name, result in self.stages.items() if result.is_degraded}

    def status_of(self, stage: str) -> Optional[StageStatus]:
        result = self.stages.get(stage)
        return result.status if result else None


# Frame helpers

def validate_frame(frame: np.ndarray) -> None:
    """Check that ``frame`` is a BGR or BGRA pixel buffer.

    Raises:
        ValueError: If the array cannot be treated as a frame
    """
    if not isinstance(frame, np.ndarray):
        raise ValueError(f"Frame must be a numpy array, got {type(frame).__name__}")
    if frame.ndim != 3 or frame.shape[2] not in (3, 4):
        raise ValueError(f"Frame must have shape (H, W, 3) or (H, W, 4), got {frame.shape}")
    if frame.shape[0] == 0 or frame.shape[1] == 0:
        raise ValueError("Frame has an empty extent")
    if frame.dtype not in (np.uint8, np.float32):
        raise ValueError(f"Unsupported frame dtype: {frame.dtype}")


def extent(image: np.ndarray) -> Tuple[int, int]:
    """(width, height) of a frame or mask."""
    return image.shape[1], image.shape[0]


def to_float(frame: np.ndarray) -> np.ndarray:
    """Convert color channels to float32 in [0, 1]."""
    if frame.dtype == np.uint8:
        return frame.astype(np.float32) / 255.0
    return frame.astype(np.float32, copy=False)


def from_float(frame: np.ndarray, dtype: np.dtype) -> np.ndarray:
    """Convert a float32 [0, 1] frame back to ``dtype``."""
    frame = np.clip(frame, 0.0, 1.0)
    if dtype == np.uint8:
        return np.rint(frame * 255.0).astype(np.uint8)
    return frame.astype(dtype, copy=False)


def split_alpha(frame: np.ndarray) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Separate color channels from an optional alpha channel."""
    if frame.shape[2] == 4:
        return frame[:, :, :3], frame[:, :, 3:]
    return frame, None


def merge_alpha(color: np.ndarray, alpha: Optional[np.ndarray]) -> np.ndarray:
    if alpha is None:
        return color
    return np.concatenate([color, alpha], axis=2)
