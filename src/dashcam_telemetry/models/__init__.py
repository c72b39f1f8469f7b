"""
Data Models
===========

Typed records passed through the telemetry engine.

Models:
    Frame:
        - FrameEvent: A frame file seen by the classifier
        - LastFrame: Debounced "last frame" record
        - FrameStats: Published frame window statistics

    GPS:
        - GPSFix, Dop, Satellites: Schema of GPS batch records

    Host:
        - CPUCounters, MemoryCounters: Raw host counters
        - CPUUsage: CPU percentages over an interval
        - TopSnapshot: Immutable host + frame snapshot
"""

from dashcam_telemetry.models.frame import FrameEvent, FrameStats, LastFrame
from dashcam_telemetry.models.gps import Dop, GPSFix, Satellites, parse_batch
from dashcam_telemetry.models.host import (
    CPUCounters,
    CPUUsage,
    MemoryCounters,
    TopSnapshot,
)

__all__ = [
    # Frame
    "FrameEvent",
    "LastFrame",
    "FrameStats",
    # GPS
    "Dop",
    "Satellites",
    "GPSFix",
    "parse_batch",
    # Host
    "CPUCounters",
    "MemoryCounters",
    "CPUUsage",
    "TopSnapshot",
]
