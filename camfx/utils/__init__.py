"""Utility helpers for camfx."""

from .assets import AssetError, BackgroundLibrary

__all__ = ["AssetError", "BackgroundLibrary"]
