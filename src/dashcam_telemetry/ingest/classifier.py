"""
Event Classifier
================

Decides the route of a created-file path.

Routing rules (first match wins):
    1. Suffix is neither a frame nor a GPS extension  -> Dropped(IGNORED)
    2. GPS extension AND path contains the GPS marker -> Routed(GPS_BATCH)
    3. File can be stat'd                             -> Routed(FRAME)
    4. File cannot be stat'd                          -> Dropped(MISSING)

Classification has no side effects; the stat call and the clock are
injectable so it can be tested without touching the filesystem.
"""

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from dashcam_telemetry.models.frame import FrameEvent


logger = logging.getLogger(__name__)


class RouteKind(str, Enum):
    """Destination of a routed event."""

    FRAME = "frame"
    GPS_BATCH = "gps_batch"


class DropReason(str, Enum):
    """Why an event was not routed."""

    IGNORED = "ignored"
    MISSING = "missing"
    UNREADABLE = "unreadable"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True, slots=True)
class Routed:
    """
    Event accepted for ingestion.

    Attributes:
        kind: Destination
        path: Path of the created file
        frame: Frame details (FRAME routes only)
    """

    kind: RouteKind
    path: str
    frame: Optional[FrameEvent] = None


@dataclass(frozen=True, slots=True)
class Dropped:
    """Event skipped, with the reason and an optional detail message."""

    reason: DropReason
    path: str
    detail: str = ""


Route = Union[Routed, Dropped]


class EventClassifier:
    """
    Path classifier.

    Attributes:
        frame_extensions: Suffixes treated as frames
        gps_extensions: Suffixes treated as GPS batches (with marker)
        gps_marker: Path fragment identifying GPS batches

    Example:
        classifier = EventClassifier()
        route = classifier.classify("/mnt/data/gps/fix_0001.json")
        assert route.kind is RouteKind.GPS_BATCH
    """

    def __init__(
        self,
        frame_extensions: Iterable[str] = (".jpg",),
        gps_extensions: Iterable[str] = (".json",),
        gps_marker: str = "gps",
        stat: Callable[[str], os.stat_result] = os.stat,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.frame_extensions = tuple(ext.lower() for ext in frame_extensions)
        self.gps_extensions = tuple(ext.lower() for ext in gps_extensions)
        self.gps_marker = gps_marker
        self._stat = stat
        self._clock = clock

    def classify(self, path: str) -> Route:
        """
        Classify one created path.

        Args:
            path: Path reported by the filesystem watcher

        Returns:
            Routed with the destination, or Dropped with the reason.
        """
        lowered = path.lower()

        is_gps_ext = lowered.endswith(self.gps_extensions)
        if not is_gps_ext and not lowered.endswith(self.frame_extensions):
            return Dropped(DropReason.IGNORED, path)

        if is_gps_ext and self.gps_marker in path:
            return Routed(RouteKind.GPS_BATCH, path)

        try:
            st = self._stat(path)
        except OSError as e:
            logger.warning(f"Dropping event, cannot stat {path}: {e}")
            return Dropped(DropReason.MISSING, path, detail=str(e))

        return Routed(
            RouteKind.FRAME,
            path,
            frame=FrameEvent(path=path, size=st.st_size, timestamp=self._clock()),
        )
