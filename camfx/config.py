"""
camfx configuration management.
Handles the user config file and the locations of stored presets,
settings and background images.
"""

import json
import logging
import platform
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CamFXConfig:
    """Manages camfx configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".camfx"
        self.config_file = self.config_dir / "config.json"
        self._settings: Dict[str, Any] = {}
        self._load_settings()

    def _load_settings(self) -> None:
        """Load settings from config file."""
        self._settings = self._get_default_settings()

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    loaded_settings = json.load(f)
                    self._settings.update(loaded_settings)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Could not load config: {e}")

    def save_settings(self) -> None:
        """Save current settings to config file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self._settings, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value."""
        return self._settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a setting value."""
        self._settings[key] = value

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._settings)

    def _get_default_settings(self) -> Dict[str, Any]:
        """Get default settings."""
        return {
            # Storage
            "presets_file": str(self.config_dir / "presets.json"),
            "settings_file": str(self.config_dir / "settings.json"),
            "backgrounds_dir": str(self.config_dir / "backgrounds"),

            # Effects
            "default_preset": "No Effect",
            "transition_duration": 0.3,

            # Segmentation
            "segmentation_model": "",
            "segmentation_input_size": [256, 256],

            # CLI
            "last_input_dir": str(Path.home()),
            "last_output_dir": str(Path.home()),

            # Platform
            "platform": platform.system(),
        }

    @property
    def presets_file(self) -> Path:
        return Path(self.get("presets_file"))

    @property
    def settings_file(self) -> Path:
        return Path(self.get("settings_file"))

    @property
    def backgrounds_dir(self) -> Path:
        return Path(self.get("backgrounds_dir"))

    @property
    def transition_duration(self) -> float:
        try:
            return max(0.0, float(self.get("transition_duration", 0.3)))
        except (TypeError, ValueError):
            logger.warning("Invalid transition_duration in config, using 0.3s")
            return 0.3

    @property
    def segmentation_input_size(self) -> Tuple[int, int]:
        width, height = self.get("segmentation_input_size", [256, 256])
        return int(width), int(height)
