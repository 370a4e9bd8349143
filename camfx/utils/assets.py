"""Background image library: install, locate and load replacement backgrounds."""

import logging
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import requests
from PIL import Image, ImageOps, UnidentifiedImageError
from tqdm import tqdm

from ..core.types import BackgroundMode, Settings

logger = logging.getLogger(__name__)

INSTALLABLE_MODES = (
    BackgroundMode.CUSTOM,
    BackgroundMode.INCLUDED1,
    BackgroundMode.INCLUDED2,
    BackgroundMode.INCLUDED3,
)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".webp", ".tif", ".tiff")


class AssetError(Exception):
    """Exception raised when a background image cannot be installed."""
    pass


def load_image(path: Union[str, Path]) -> Optional[np.ndarray]:
    """Load an image as a BGR uint8 array, honoring EXIF orientation.

    Args:
        path: Image file path

    Returns:
        Image array, or None if the file cannot be read
    """
    try:
        with Image.open(path) as image:
            image = ImageOps.exif_transpose(image)
            rgb = np.asarray(image.convert("RGB"))
    except (OSError, UnidentifiedImageError, ValueError) as e:
        logger.warning(f"Failed to load background image from {path}: {e}")
        return None

    return np.ascontiguousarray(rgb[:, :, ::-1])


def _is_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


class BackgroundLibrary:
    """Store replacement backgrounds for the image modes."""

    def __init__(self, install_dir: Optional[Path] = None):
        """Initialize background library.

        Args:
            install_dir: Directory holding installed backgrounds
        """
        if install_dir is None:
            install_dir = Path.home() / ".camfx" / "backgrounds"

        self.install_dir = Path(install_dir)
        self.install_dir.mkdir(parents=True, exist_ok=True)

        logger.debug(f"Background library: {self.install_dir}")

    def get_background_path(self, mode: BackgroundMode) -> Optional[Path]:
        """Installed file for ``mode``, if any."""
        for candidate in sorted(self.install_dir.glob(f"{mode.value}.*")):
            if candidate.suffix.lower() in IMAGE_EXTENSIONS:
                return candidate
        return None

    def is_installed(self, mode: BackgroundMode) -> bool:
        return self.get_background_path(mode) is not None

    def install_background(self, mode: BackgroundMode, source: str, force: bool = False) -> Path:
        """Install a background image from a local file or URL.

        Args:
            mode: Image mode slot to fill
            source: File path or http(s) URL
            force: Replace an existing image

        Returns:
            Path to the installed image

        Raises:
            AssetError: If the image cannot be fetched or is not an image
        """
        if mode not in INSTALLABLE_MODES:
            raise AssetError(f"Background mode '{mode.value}' does not use an image")

        existing = self.get_background_path(mode)
        if existing and not force:
            logger.info(f"Background already installed for {mode.value}: {existing}")
            return existing

        suffix = Path(source.split("?")[0]).suffix.lower()
        if suffix not in IMAGE_EXTENSIONS:
            suffix = ".png"
        staging = self.install_dir / f".{mode.value}.download{suffix}"

        try:
            if _is_url(source):
                self._download_file(source, staging)
            else:
                source_path = Path(source).expanduser()
                if not source_path.is_file():
                    raise AssetError(f"Background image not found: {source}")
                shutil.copyfile(source_path, staging)

            self._verify_image(staging)
        except Exception:
            if staging.exists():
                staging.unlink()
            raise

        if existing:
            existing.unlink()
        dest_path = self.install_dir / f"{mode.value}{suffix}"
        staging.replace(dest_path)

        logger.info(f"Installed {mode.display_name} background: {dest_path}")
        return dest_path

    def remove_background(self, mode: BackgroundMode) -> None:
        """Delete the installed image for ``mode``.

        Raises:
            FileNotFoundError: If nothing is installed for ``mode``
        """
        path = self.get_background_path(mode)
        if path is None:
            raise FileNotFoundError(f"No background installed for {mode.value}")
        path.unlink()
        logger.info(f"Removed {mode.display_name} background")

    def load_background(self, mode: BackgroundMode) -> Optional[np.ndarray]:
        path = self.get_background_path(mode)
        return load_image(path) if path else None

    def resolve(self, settings: Settings, custom_image_path: Optional[str] = None) -> Settings:
        """Attach every available background image to ``settings``.

        Args:
            settings: Settings snapshot
            custom_image_path: Explicit image for the custom mode; the
                               installed custom image is used otherwise

        Returns:
            Settings with images attached where available
        """
        for mode in INSTALLABLE_MODES:
            if mode is BackgroundMode.CUSTOM and custom_image_path:
                image = load_image(custom_image_path)
            else:
                image = self.load_background(mode)
            if image is not None:
                settings = settings.with_background_image(mode, image)
        return settings

    def _verify_image(self, path: Path) -> None:
        try:
            with Image.open(path) as image:
                image.verify()
        except (OSError, UnidentifiedImageError) as e:
            raise AssetError(f"Not a valid image: {e}")

    def _download_file(self, url: str, dest_path: Path, chunk_size: int = 8192) -> None:
        """Download a file with progress bar.

        Args:
            url: URL to download from
            dest_path: Destination file path
            chunk_size: Download chunk size in bytes

        Raises:
            AssetError: If download fails
        """
        try:
            logger.debug(f"Downloading {url} -> {dest_path}")

            response = requests.get(url, stream=True, timeout=30)
            response.raise_for_status()
            total_size = int(response.headers.get('content-length', 0))

            with open(dest_path, 'wb') as f:
                with tqdm(total=total_size, unit='B', unit_scale=True, desc=dest_path.name) as pbar:
                    for chunk in response.iter_content(chunk_size=chunk_size):
                        if chunk:
                            f.write(chunk)
                            pbar.update(len(chunk))

            logger.debug(f"Downloaded: {dest_path}")

        except requests.RequestException as e:
            if dest_path.exists():
                dest_path.unlink()
            raise AssetError(f"Failed to download {url}: {e}")

    def list_installed(self) -> List[BackgroundMode]:
        return [mode for mode in INSTALLABLE_MODES if self.is_installed(mode)]

    def get_install_info(self) -> Dict:
        """Get installation information.

        Returns:
            Dictionary with library details
        """
        backgrounds = {}
        for mode in INSTALLABLE_MODES:
            path = self.get_background_path(mode)
            backgrounds[mode.value] = {
                "name": mode.display_name,
                "installed": path is not None,
                "path": str(path) if path else None,
                "size": path.stat().st_size if path else 0,
            }

        return {
            "install_dir": str(self.install_dir),
            "backgrounds": backgrounds,
        }
