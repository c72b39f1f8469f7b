"""
Event Dispatcher
================

Consumes created-file paths and routes them to the aggregates.

This module provides the EventDispatcher class which:
    - Pulls paths from the EventBuffer
    - Classifies each path (frame, GPS batch, ignored)
    - Feeds frames to the FrameWindowTracker
    - Reads GPS batches and feeds them to the GPSAggregateTable
    - Drains already-buffered events on shutdown

Design Rules:
    - A single bad event never stops the dispatcher
    - Dropped events are counted per reason and logged
"""

import asyncio
import logging
from collections import Counter
from pathlib import Path
from typing import Optional

from dashcam_telemetry.aggregation.frame_tracker import FrameWindowTracker
from dashcam_telemetry.aggregation.gps_table import GPSAggregateTable
from dashcam_telemetry.errors import TransientIngestError
from dashcam_telemetry.ingest.classifier import (
    Dropped,
    DropReason,
    EventClassifier,
    Route,
    RouteKind,
    Routed,
)
from dashcam_telemetry.stream.buffer import EventBuffer


logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Routes classified events to the frame tracker or the GPS table.

    Attributes:
        classifier: Path classifier
        frame_tracker: Destination of frame events
        gps_table: Destination of GPS batches
        buffer: Source of path events (needed by run() only)

    Example:
        dispatcher = EventDispatcher(classifier, tracker, table, buffer)
        task = asyncio.create_task(dispatcher.run())

        # Later, stop gracefully (buffered events are still routed)
        dispatcher.stop()
        await task
    """

    def __init__(
        self,
        classifier: EventClassifier,
        frame_tracker: FrameWindowTracker,
        gps_table: GPSAggregateTable,
        buffer: Optional[EventBuffer] = None,
        poll_timeout: float = 0.5,
    ) -> None:
        self.classifier = classifier
        self.frame_tracker = frame_tracker
        self.gps_table = gps_table
        self.buffer = buffer
        self.poll_timeout = poll_timeout

        self._running: bool = False
        self._routed: Counter = Counter()
        self._dropped: Counter = Counter()

    @property
    def running(self) -> bool:
        return self._running

    def route(self, path: str) -> Route:
        """
        Classify a path and hand it to its destination.

        Args:
            path: Created-file path

        Returns:
            Routed on success, Dropped with the reason otherwise.
        """
        route = self.classifier.classify(path)

        if isinstance(route, Routed):
            if route.kind is RouteKind.FRAME:
                self.frame_tracker.observe_event(route.frame)
            else:
                route = self._ingest_gps(route)

        if isinstance(route, Routed):
            self._routed[route.kind.value] += 1
        else:
            self._dropped[route.reason.value] += 1
        return route

    def _ingest_gps(self, route: Routed) -> Route:
        try:
            raw = Path(route.path).read_bytes()
        except OSError as e:
            logger.warning(f"Dropping GPS batch, cannot read {route.path}: {e}")
            return Dropped(DropReason.UNREADABLE, route.path, detail=str(e))

        try:
            self.gps_table.ingest_batch(raw, source=route.path)
        except TransientIngestError as e:
            logger.warning(f"Dropping GPS batch: {e}")
            return Dropped(DropReason.PARSE_ERROR, route.path, detail=str(e))

        return route

    async def run(self) -> None:
        """
        Route buffered events until stop() is called.

        Events still buffered when stopping are routed before returning.
        """
        if self.buffer is None:
            raise RuntimeError("EventDispatcher.run() requires a buffer")

        self._running = True
        logger.info("Event dispatcher started")

        try:
            while self._running:
                path = await self.buffer.get(timeout=self.poll_timeout)
                if path is None:
                    continue
                self._route_safely(path)
        except asyncio.CancelledError:
            logger.info("Event dispatcher cancelled")
            raise
        finally:
            self._running = False
            drained = self.buffer.drain()
            for path in drained:
                self._route_safely(path)
            if drained:
                logger.info(f"Event dispatcher drained {len(drained)} buffered event(s)")
            logger.info("Event dispatcher stopped")

    def stop(self) -> None:
        """Signal run() to finish after draining the buffer."""
        self._running = False

    def _route_safely(self, path: str) -> None:
        try:
            self.route(path)
        except Exception as e:
            self._dropped["error"] += 1
            logger.error(f"Unexpected error routing {path}: {e}")

    def get_metrics(self) -> dict:
        """Get dispatcher metrics for observability."""
        return {
            "routed": dict(self._routed),
            "dropped": dict(self._dropped),
        }
