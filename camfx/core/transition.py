"""Timed interpolation between two settings snapshots."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from .types import IMAGE_FIELDS, SCALAR_FIELDS, Settings

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 0.3

# Fraction of the transition at which the background selection switches
MODE_SWITCH_PROGRESS = 0.5


@dataclass(frozen=True)
class TransitionState:
    """Endpoints and timing of a started transition."""

    start_settings: Settings
    end_settings: Settings
    start_time: float
    duration: float


def lerp(start: float, end: float, progress: float) -> float:
    return start + (end - start) * progress


class SettingsTransition:
    """Move from one settings snapshot to another over ``duration`` seconds.

    Scalar parameters are interpolated linearly. The background mode, its
    images and mirroring have no in-between value, so they switch from the
    start to the end value halfway through. Once complete the end snapshot
    itself is returned.
    """

    def __init__(self, start_settings: Settings, end_settings: Settings,
                 duration: float = DEFAULT_DURATION):
        """Initialize the transition.

        Args:
            start_settings: Settings at progress 0
            end_settings: Settings at progress 1
            duration: Transition length in seconds
        """
        self.start_settings = start_settings
        self.end_settings = end_settings
        self.duration = float(duration)
        self._start_time: Optional[float] = None

    @staticmethod
    def now() -> float:
        return time.monotonic()

    @property
    def started(self) -> bool:
        return self._start_time is not None

    @property
    def state(self) -> Optional[TransitionState]:
        """Immutable state, or None before ``start``."""
        if self._start_time is None:
            return None
        return TransitionState(self.start_settings, self.end_settings, self._start_time, self.duration)

    def start(self, now: Optional[float] = None) -> "SettingsTransition":
        """Record the start time. May be called once.

        Raises:
            RuntimeError: If the transition was already started
        """
        if self._start_time is not None:
            raise RuntimeError("Transition already started")
        self._start_time = self.now() if now is None else float(now)
        logger.debug(
            f"Transition started: {self.start_settings.background_mode.value} -> "
            f"{self.end_settings.background_mode.value} over {self.duration:.2f}s"
        )
        return self

    def progress(self, now: Optional[float] = None) -> float:
        """Completed fraction in [0, 1]. An unstarted transition counts as done."""
        if self._start_time is None or self.duration <= 0:
            return 1.0
        now = self.now() if now is None else now
        elapsed = now - self._start_time
        return min(1.0, max(0.0, elapsed / self.duration))

    def is_complete(self, now: Optional[float] = None) -> bool:
        return self.progress(now) >= 1.0

    def current_settings(self, now: Optional[float] = None) -> Settings:
        """Settings snapshot at time ``now``.

        Args:
            now: Timestamp on the ``time.monotonic`` clock (defaults to now)

        Returns:
            Interpolated settings; exactly ``end_settings`` once complete
        """
        progress = self.progress(now)
        if progress >= 1.0:
            return self.end_settings

        discrete = self.start_settings if progress < MODE_SWITCH_PROGRESS else self.end_settings
        changes = {
            name: lerp(getattr(self.start_settings, name), getattr(self.end_settings, name), progress)
            for name in SCALAR_FIELDS
        }
        changes.update({name: getattr(discrete, name) for name in IMAGE_FIELDS})
        changes["background_mode"] = discrete.background_mode
        changes["mirror_video"] = discrete.mirror_video

        return self.start_settings.replace(**changes)
