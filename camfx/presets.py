"""Preset and settings persistence."""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .core.types import BackgroundMode, Preset, Settings

logger = logging.getLogger(__name__)


def default_presets() -> List[Preset]:
    """Presets written on first run."""
    return [
        Preset(
            name="No Effect",
            mode=BackgroundMode.NONE,
            settings=Settings()
        ),
        Preset(
            name="Slight Blur",
            mode=BackgroundMode.STRONG_BLUR,
            settings=Settings(skin_smoothing_amount=0.3)
        ),
        Preset(
            name="Strong Blur",
            mode=BackgroundMode.STRONG_BLUR,
            settings=Settings(
                skin_smoothing_amount=0.3,
                brightness=0.1,
                contrast=1.1,
                saturation=1.1
            )
        ),
    ]


class PresetStore:
    """Ordered list of presets persisted to a JSON file.

    Call ``load()`` once at startup. Every mutation is flushed to disk
    immediately.
    """

    def __init__(self, presets_file: Optional[Path] = None):
        """Initialize preset store.

        Args:
            presets_file: JSON file holding the preset list
        """
        self.presets_file = Path(presets_file or Path.home() / ".camfx" / "presets.json")
        self._presets: List[Preset] = []
        self._loaded = False

    @property
    def presets(self) -> List[Preset]:
        return list(self._presets)

    def load(self) -> List[Preset]:
        """Load presets from disk, writing the defaults if none are stored."""
        presets = None
        if self.presets_file.exists():
            try:
                with open(self.presets_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                presets = [Preset.from_record(record) for record in data]
            except (json.JSONDecodeError, OSError, ValueError, TypeError) as e:
                logger.warning(f"Could not load presets from {self.presets_file}: {e}")

        if presets is None:
            self._presets = default_presets()
            self._loaded = True
            self.flush()
        else:
            self._presets = presets
            self._loaded = True
            logger.info(f"Loaded {len(presets)} presets from {self.presets_file}")

        return self.presets

    def flush(self) -> None:
        """Write presets to disk."""
        self.presets_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.presets_file, 'w', encoding='utf-8') as f:
            json.dump([preset.to_record() for preset in self._presets], f, indent=2)
        logger.debug(f"Saved {len(self._presets)} presets to {self.presets_file}")

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def names(self) -> List[str]:
        self._ensure_loaded()
        return [preset.name for preset in self._presets]

    def index_of(self, name: str) -> int:
        """Position of the named preset.

        Raises:
            KeyError: If no preset has that name
        """
        self._ensure_loaded()
        for index, preset in enumerate(self._presets):
            if preset.name == name:
                return index
        raise KeyError(f"Preset '{name}' not found")

    def get(self, name: str) -> Preset:
        """Get preset by name.

        Raises:
            KeyError: If preset not found
        """
        return self._presets[self.index_of(name)]

    def add(self, preset: Preset) -> None:
        """Append a preset.

        Raises:
            FileExistsError: If a preset with the same name exists
            ValueError: If the preset settings are invalid
        """
        self._ensure_loaded()
        if preset.name in self.names():
            raise FileExistsError(f"Preset '{preset.name}' already exists")
        preset.settings.validate()

        self._presets.append(preset)
        self.flush()
        logger.info(f"Added preset '{preset.name}'")

    def update(self, index: int, preset: Preset) -> None:
        """Replace the preset at ``index``.

        Raises:
            IndexError: If ``index`` is out of range
        """
        self._ensure_loaded()
        if not 0 <= index < len(self._presets):
            raise IndexError(f"Preset index {index} out of range")
        preset.settings.validate()

        self._presets[index] = preset
        self.flush()
        logger.info(f"Updated preset '{preset.name}'")

    def remove(self, index: int) -> Preset:
        """Remove and return the preset at ``index``.

        Raises:
            IndexError: If ``index`` is out of range
        """
        self._ensure_loaded()
        if not 0 <= index < len(self._presets):
            raise IndexError(f"Preset index {index} out of range")

        preset = self._presets.pop(index)
        self.flush()
        logger.info(f"Deleted preset '{preset.name}'")
        return preset

    def get_preset_info(self, name: str) -> Dict:
        """Preset record plus derived details."""
        preset = self.get(name)
        return {
            "preset": preset.to_record(),
            "index": self.index_of(name),
            "mode_name": preset.mode.display_name,
            "needs_image": preset.mode.requires_image,
            "file_path": str(self.presets_file),
        }


class SettingsStore:
    """Current settings snapshot persisted to a JSON file.

    The custom background path is stored beside the settings record, and
    only while the custom mode is selected.
    """

    def __init__(self, settings_file: Optional[Path] = None):
        self.settings_file = Path(settings_file or Path.home() / ".camfx" / "settings.json")

    def load(self) -> Tuple[Settings, Optional[str]]:
        """Load the stored settings.

        Returns:
            Tuple of (settings, custom_image_path); defaults when nothing
            valid is stored
        """
        if not self.settings_file.exists():
            return Settings(), None

        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            settings = Settings.from_record(data["settings"])
        except (json.JSONDecodeError, OSError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Could not load settings from {self.settings_file}: {e}")
            return Settings(), None

        image_path = data.get("customImagePath")
        if settings.background_mode is not BackgroundMode.CUSTOM:
            image_path = None
        return settings, image_path

    def save(self, settings: Settings, custom_image_path: Optional[str] = None) -> None:
        """Write ``settings`` to disk."""
        data = {"settings": settings.to_record()}
        if settings.background_mode is BackgroundMode.CUSTOM and custom_image_path:
            data["customImagePath"] = str(custom_image_path)

        self.settings_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.settings_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        logger.debug(f"Saved settings to {self.settings_file}")
