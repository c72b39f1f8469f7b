"""
Frame Window Tracker
====================

Windowed frame rate and frame size, plus the debounced "last frame".

This tracker:
    - Counts frames and bytes within the current window
    - Publishes framerate and average frame size when the window closes
    - Keeps a lifetime frame total that is never reset
    - Keeps the "last frame" record, debounced

Window semantics:
    framerate = count // window_seconds    (rates under 1 fps read as 0)
    average   = byte_sum // count          (only if count > 0)

    An empty window publishes framerate 0 but keeps the previous average
    frame size. Readers only ever see values published at a window tick.

Debounce:
    The last-frame record is replaced only if it is older than the debounce
    period. During a burst the first frame of the burst is reported, not
    the most recent one.
"""

import logging
import os
import threading
import time
from typing import Optional

from dashcam_telemetry.errors import ConfigurationError
from dashcam_telemetry.models.frame import FrameEvent, FrameStats, LastFrame


logger = logging.getLogger(__name__)


class FrameWindowTracker:
    """
    Frame rate/size counters and last-frame record.

    Attributes:
        window_seconds: Window length in seconds
        debounce_seconds: Minimum age of the last frame before replacement

    Example:
        tracker = FrameWindowTracker(window_seconds=5)

        tracker.observe("frame_0001.jpg", 183_204)
        stats = tracker.tick_window()
        print(stats.framerate, stats.average_frame_size)
    """

    def __init__(
        self,
        window_seconds: int = 5,
        debounce_seconds: float = 0.5,
    ) -> None:
        """
        Initialize frame tracker.

        Args:
            window_seconds: Window length, must be >= 1
            debounce_seconds: Last-frame debounce, must be >= 0

        Raises:
            ConfigurationError: On invalid window or debounce
        """
        if window_seconds < 1:
            raise ConfigurationError("window_seconds must be >= 1")
        if debounce_seconds < 0:
            raise ConfigurationError("debounce_seconds must be >= 0")

        self.window_seconds = int(window_seconds)
        self.debounce_seconds = debounce_seconds

        self._lock = threading.Lock()

        # Current window
        self._window_count: int = 0
        self._window_bytes: int = 0

        # Published values
        self._stats = FrameStats()
        self._total_frames: int = 0
        self._last_frame: Optional[LastFrame] = None

        logger.info(
            f"FrameWindowTracker initialized: window={self.window_seconds}s, "
            f"debounce={debounce_seconds}s"
        )

    def observe(self, filename: str, size: int, now: Optional[float] = None) -> None:
        """
        Record one frame.

        Args:
            filename: Path or name of the frame file
            size: Frame size in bytes
            now: Observation time (defaults to time.time())
        """
        if now is None:
            now = time.time()

        with self._lock:
            self._window_count += 1
            self._window_bytes += size
            self._total_frames += 1

            last = self._last_frame
            if last is None or now - last.timestamp > self.debounce_seconds:
                self._last_frame = LastFrame(
                    filename=os.path.basename(filename),
                    size=size,
                    timestamp=now,
                )

    def observe_event(self, event: FrameEvent) -> None:
        self.observe(event.path, event.size, event.timestamp)

    def tick_window(self) -> FrameStats:
        """
        Close the current window and publish its rate and average size.

        Returns:
            The published FrameStats.
        """
        with self._lock:
            count = self._window_count
            framerate = count // self.window_seconds

            average = self._stats.average_frame_size
            if count > 0:
                average = self._window_bytes // count

            self._stats = FrameStats(
                framerate=framerate,
                average_frame_size=average,
                total_frame_count=self._total_frames,
            )
            self._window_count = 0
            self._window_bytes = 0
            stats = self._stats

        logger.debug(
            f"Frame window closed: frames={count}, rate={stats.framerate}/s, "
            f"avg_size={stats.average_frame_size}"
        )
        return stats

    def snapshot(self) -> FrameStats:
        """
        Published stats with the current lifetime total.

        framerate and average_frame_size are those of the last closed
        window; total_frame_count includes frames of the open window.
        """
        with self._lock:
            return FrameStats(
                framerate=self._stats.framerate,
                average_frame_size=self._stats.average_frame_size,
                total_frame_count=self._total_frames,
            )

    def last_frame(self) -> Optional[LastFrame]:
        with self._lock:
            return self._last_frame

    @property
    def total_frame_count(self) -> int:
        with self._lock:
            return self._total_frames
