"""
Aggregation Module
==================

Stateful aggregates fed by the event dispatcher:
    - Average: Incremental mean for one (metric, minute bucket)
    - GPSAggregateTable: Per-minute GPS quality averages with eviction
    - FrameWindowTracker: Windowed frame rate/size and last frame
"""

from dashcam_telemetry.aggregation.averager import Average
from dashcam_telemetry.aggregation.frame_tracker import FrameWindowTracker
from dashcam_telemetry.aggregation.gps_table import (
    METRICS,
    GPSAggregateTable,
    bucket_for,
)

__all__ = [
    "Average",
    "FrameWindowTracker",
    "GPSAggregateTable",
    "METRICS",
    "bucket_for",
]
