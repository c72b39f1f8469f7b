"""
Frame Models
============

Data models passed between the classifier, the frame tracker and readers.

All models are frozen: readers only ever receive copies, never references
into live tracker state.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FrameEvent:
    """
    A frame file observed on disk.

    Produced by the event classifier, consumed once by the frame tracker.

    Attributes:
        path: Full path of the created file
        size: File size in bytes at classification time
        timestamp: UNIX time when the file was classified
    """

    path: str
    size: int
    timestamp: float


@dataclass(frozen=True, slots=True)
class LastFrame:
    """
    The frame reported as "last frame" to readers.

    Attributes:
        filename: Base name of the frame file
        size: File size in bytes
        timestamp: UNIX time when the frame was observed
    """

    filename: str
    size: int
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "size": self.size,
            "timestamp": round(self.timestamp, 3),
        }


@dataclass(frozen=True, slots=True)
class FrameStats:
    """
    Published frame window statistics.

    framerate and average_frame_size only change when a window closes;
    total_frame_count counts every frame observed since startup.
    """

    framerate: int = 0
    average_frame_size: int = 0
    total_frame_count: int = 0

    def to_dict(self) -> dict:
        return {
            "framerate": self.framerate,
            "average_frame_size": self.average_frame_size,
            "total_frame_count": self.total_frame_count,
        }
