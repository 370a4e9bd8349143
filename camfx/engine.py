"""Frame engine: owns the current settings, preset transitions and stats."""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Optional, Tuple

import numpy as np
import psutil

from .core.pipeline import EffectPipeline
from .core.transition import DEFAULT_DURATION, SettingsTransition
from .core.types import Degradation, FrameReport, Preset, Settings

logger = logging.getLogger(__name__)


@dataclass
class FrameStats:
    """Statistics for a processed frame."""
    frame_number: int
    processing_start: float
    processing_end: float = 0.0
    transition_progress: float = 1.0
    report: Optional[FrameReport] = None

    @property
    def processing_time_ms(self) -> float:
        """Processing time in milliseconds."""
        return (self.processing_end - self.processing_start) * 1000

    @property
    def degraded(self) -> bool:
        return bool(self.report and self.report.degradations)


@dataclass
class EngineStats:
    """Engine performance and degradation statistics."""
    frames_processed: int = 0
    frames_degraded: int = 0
    transitions_started: int = 0

    # Degradations by reason, and the current run of frames without a mask
    degradations: Dict[str, int] = field(default_factory=dict)
    consecutive_mask_failures: int = 0

    # Performance metrics
    current_fps: float = 0.0
    avg_latency_ms: float = 0.0
    max_latency_ms: float = 0.0

    # Resource usage
    cpu_usage_percent: float = 0.0
    memory_usage_mb: float = 0.0

    # Timing
    start_time: float = field(default_factory=time.time)
    last_update: float = field(default_factory=time.time)

    @property
    def uptime_seconds(self) -> float:
        """Engine uptime in seconds."""
        return time.time() - self.start_time


class EffectEngine:
    """Single-threaded driver around an ``EffectPipeline``.

    Holds the target settings, starts a ``SettingsTransition`` whenever a
    preset or settings change is requested, and feeds the effective settings
    for each frame into the pipeline. Frames are processed synchronously in
    the caller's thread; there is no queue.
    """

    def __init__(
        self,
        pipeline: Optional[EffectPipeline] = None,
        settings: Optional[Settings] = None,
        transition_duration: float = DEFAULT_DURATION,
        clock: Callable[[], float] = time.monotonic,
        history_size: int = 120
    ):
        """Initialize the engine.

        Args:
            pipeline: Effect pipeline (a new one without segmentation if None)
            settings: Initial settings
            transition_duration: Seconds to blend between settings
            clock: Monotonic clock used for transitions
            history_size: Number of recent frames kept for FPS/latency stats
        """
        self.pipeline = pipeline or EffectPipeline()
        self.settings = settings or Settings()
        self.transition_duration = transition_duration
        self.clock = clock

        self.preset: Optional[Preset] = None
        self.transition: Optional[SettingsTransition] = None

        self.stats = EngineStats()
        self.frame_history: Deque[FrameStats] = deque(maxlen=history_size)
        self._frame_number = 0
        self.process = psutil.Process()

    def effective_settings(self, now: Optional[float] = None) -> Settings:
        """Settings to use for a frame at ``now``; drops a finished transition."""
        if self.transition is None:
            return self.settings

        now = self.clock() if now is None else now
        if self.transition.is_complete(now):
            logger.debug("Transition complete")
            self.transition = None
            return self.settings

        return self.transition.current_settings(now)

    def update_settings(self, settings: Settings, animate: bool = True,
                        now: Optional[float] = None) -> None:
        """Change the target settings.

        Args:
            settings: New settings
            animate: Blend from the current effective settings
            now: Timestamp for the transition start
        """
        now = self.clock() if now is None else now
        if settings == self.settings and self.transition is None:
            self.settings = settings
            return

        current = self.effective_settings(now)
        self.settings = settings

        if animate and self.transition_duration > 0:
            self.transition = SettingsTransition(current, settings, self.transition_duration).start(now)
            self.stats.transitions_started += 1
        else:
            self.transition = None

    def set_preset(self, preset: Preset, settings: Optional[Settings] = None,
                   animate: bool = True, now: Optional[float] = None) -> None:
        """Select a preset.

        Args:
            preset: Preset to select
            settings: The preset's effective settings with background images
                      attached; defaults to ``preset.effective_settings()``
            animate: Blend from the current effective settings
            now: Timestamp for the transition start
        """
        logger.info(f"Selecting preset: {preset.name} ({preset.mode.display_name})")
        self.preset = preset
        self.pipeline.invalidate_cache()
        self.update_settings(settings or preset.effective_settings(), animate=animate, now=now)

    def process_frame(self, frame: np.ndarray,
                      now: Optional[float] = None) -> Tuple[np.ndarray, FrameStats]:
        """Process one frame with the effective settings.

        Args:
            frame: Camera frame
            now: Timestamp for transition lookup

        Returns:
            Tuple of (processed_frame, frame_stats)
        """
        now = self.clock() if now is None else now
        frame_stats = FrameStats(frame_number=self._frame_number, processing_start=time.perf_counter())
        self._frame_number += 1

        transition = self.transition
        if transition is not None:
            frame_stats.transition_progress = transition.progress(now)
        settings = self.effective_settings(now)

        result, report = self.pipeline.process_with_report(frame, settings)

        frame_stats.processing_end = time.perf_counter()
        frame_stats.report = report
        self._record(frame_stats)

        return result, frame_stats

    def _record(self, frame_stats: FrameStats) -> None:
        self.stats.frames_processed += 1
        self.frame_history.append(frame_stats)

        report = frame_stats.report
        if report.degradations:
            self.stats.frames_degraded += 1
            for reason in report.degradations.values():
                self.stats.degradations[reason.value] = self.stats.degradations.get(reason.value, 0) + 1

        if report.segmentation_invoked and not report.mask_available:
            self.stats.consecutive_mask_failures += 1
            if self.stats.consecutive_mask_failures == 1:
                logger.debug("Segmentation returned no mask")
        elif report.segmentation_invoked:
            self.stats.consecutive_mask_failures = 0

    def degradation_count(self, reason: Degradation) -> int:
        return self.stats.degradations.get(reason.value, 0)

    def update_statistics(self) -> EngineStats:
        """Recompute FPS, latency and resource usage from recent frames."""
        times = [f.processing_time_ms for f in self.frame_history]
        if times:
            self.stats.avg_latency_ms = sum(times) / len(times)
            self.stats.max_latency_ms = max(times)
            if self.stats.avg_latency_ms > 0:
                self.stats.current_fps = 1000.0 / self.stats.avg_latency_ms

        self.update_resource_usage()
        self.stats.last_update = time.time()
        return self.stats

    def update_resource_usage(self) -> None:
        try:
            self.stats.cpu_usage_percent = self.process.cpu_percent()
            self.stats.memory_usage_mb = self.process.memory_info().rss / (1024 * 1024)
        except psutil.Error as e:
            logger.debug(f"Could not read process resource usage: {e}")

    def get_stats(self) -> EngineStats:
        """Get current engine statistics."""
        return self.stats
