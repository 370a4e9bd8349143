"""camfx - Real-time background and color effects for virtual cameras."""

__version__ = "1.0.0"

from .core import EffectPipeline, SettingsTransition
from .core.types import BackgroundMode, Preset, Settings

__all__ = [
    "__version__",
    "BackgroundMode",
    "EffectPipeline",
    "Preset",
    "Settings",
    "SettingsTransition",
]
