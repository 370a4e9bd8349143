"""camfx core modules for per-frame effects and settings transitions."""

from .color import ColorAdjustmentStage
from .compositor import BackgroundCompositor
from .pipeline import EffectPipeline
from .segmentation import (CallableSegmenter, DnnSegmenter, NullSegmenter,
                           SegmentationProvider, StaticMaskSegmenter)
from .smoothing import SkinSmoothingStage
from .transition import SettingsTransition, TransitionState

__all__ = [
    "BackgroundCompositor",
    "CallableSegmenter",
    "ColorAdjustmentStage",
    "DnnSegmenter",
    "EffectPipeline",
    "NullSegmenter",
    "SegmentationProvider",
    "SettingsTransition",
    "SkinSmoothingStage",
    "StaticMaskSegmenter",
    "TransitionState",
]
