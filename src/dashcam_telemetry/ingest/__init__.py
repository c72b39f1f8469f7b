"""
Ingest Module
=============

Classification and routing of created-file events.

    - EventClassifier: path -> Routed(kind) | Dropped(reason)
    - EventDispatcher: routes classified events to the aggregates
"""

from dashcam_telemetry.ingest.classifier import (
    Dropped,
    DropReason,
    EventClassifier,
    Route,
    RouteKind,
    Routed,
)
from dashcam_telemetry.ingest.dispatcher import EventDispatcher

__all__ = [
    "Dropped",
    "DropReason",
    "EventClassifier",
    "EventDispatcher",
    "Route",
    "RouteKind",
    "Routed",
]
