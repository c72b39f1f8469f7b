"""
Telemetry Engine
================

Context object owning every component and background task.

The engine is constructed once at startup from Settings and handed to the
HTTP layer. Readers only call its snapshot accessors; all mutable state
lives in the components it owns.

Tasks:
    - event_dispatcher: routes buffered paths to the aggregates
    - frame_window:     closes the frame window every window_seconds
    - host_sampler:     publishes TopSnapshots every interval_seconds
    - gps_eviction:     evicts old GPS buckets (only if enabled)

Shutdown order:
    watcher stopped -> periodic tasks cancelled -> dispatcher drains the
    buffer and exits. Events already buffered are not lost.
"""

import asyncio
import logging
import time
from typing import List, Optional

from dashcam_telemetry.aggregation.frame_tracker import FrameWindowTracker
from dashcam_telemetry.aggregation.gps_table import GPSAggregateTable
from dashcam_telemetry.config import Settings
from dashcam_telemetry.errors import ConfigurationError, TransientIngestError
from dashcam_telemetry.host.sampler import HostSampler
from dashcam_telemetry.host.stats import HostStatsSource, PsutilStatsSource
from dashcam_telemetry.ingest.classifier import EventClassifier
from dashcam_telemetry.ingest.dispatcher import EventDispatcher
from dashcam_telemetry.models.frame import LastFrame
from dashcam_telemetry.models.host import TopSnapshot
from dashcam_telemetry.stream.buffer import EventBuffer
from dashcam_telemetry.stream.watcher import DirectoryWatcher


logger = logging.getLogger(__name__)


class TelemetryEngine:
    """
    Owns the aggregation engine and its background tasks.

    Attributes:
        settings: Loaded configuration
        buffer: Event buffer between watcher and dispatcher
        frame_tracker: Frame window tracker
        gps_table: GPS aggregate table
        dispatcher: Event dispatcher
        sampler: Host snapshot sampler
        watcher: Filesystem watcher

    Example:
        engine = TelemetryEngine(load_config())
        await engine.start()
        ...
        await engine.stop()
    """

    def __init__(
        self,
        settings: Settings,
        stats_source: Optional[HostStatsSource] = None,
    ) -> None:
        """
        Build every component.

        Raises:
            ConfigurationError: If a component rejects its settings
        """
        self.settings = settings

        self.buffer = EventBuffer(maxsize=settings.watch.max_queue_size)
        self.frame_tracker = FrameWindowTracker(
            window_seconds=settings.frames.window_seconds,
            debounce_seconds=settings.frames.debounce_seconds,
        )
        self.gps_table = GPSAggregateTable(
            legacy_vdop_from_tdop=settings.gps.legacy_vdop_from_tdop,
        )
        self.classifier = EventClassifier(
            frame_extensions=settings.watch.frame_extensions,
            gps_extensions=settings.watch.gps_extensions,
            gps_marker=settings.watch.gps_marker,
        )
        self.dispatcher = EventDispatcher(
            classifier=self.classifier,
            frame_tracker=self.frame_tracker,
            gps_table=self.gps_table,
            buffer=self.buffer,
        )
        self.sampler = HostSampler(
            source=stats_source if stats_source is not None else PsutilStatsSource(),
            frame_tracker=self.frame_tracker,
            interval_seconds=settings.host.interval_seconds,
            cpu_sample_seconds=settings.host.cpu_sample_seconds,
        )
        self.watcher = DirectoryWatcher(
            [settings.watch.images_path, settings.watch.gps_path],
            self.buffer,
        )

        self._dispatcher_task: Optional[asyncio.Task] = None
        self._sampler_task: Optional[asyncio.Task] = None
        self._periodic_tasks: List[asyncio.Task] = []
        self._started_at: float = 0.0

    @property
    def started(self) -> bool:
        return self._dispatcher_task is not None

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self._started_at if self._started_at else 0.0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self, watch: bool = True) -> None:
        """
        Backfill GPS history, start the watcher and the background tasks.

        Args:
            watch: Start the filesystem watcher (disable to feed the buffer
                directly)

        Raises:
            ConfigurationError: If a watched directory cannot be watched
        """
        if self.started:
            logger.warning("TelemetryEngine already started")
            return

        self._started_at = time.time()
        settings = self.settings

        if settings.watch.gps_path and settings.gps.load_existing:
            try:
                self.gps_table.load_directory(
                    settings.watch.gps_path,
                    extensions=settings.watch.gps_extensions,
                )
            except TransientIngestError as e:
                logger.warning(f"GPS backfill skipped: {e}")

        if watch:
            try:
                self.watcher.start(asyncio.get_running_loop())
            except OSError as e:
                raise ConfigurationError(f"Cannot watch {self.watcher.paths}: {e}") from e

        self._dispatcher_task = asyncio.create_task(
            self.dispatcher.run(),
            name="event_dispatcher",
        )
        self._sampler_task = asyncio.create_task(
            self.sampler.run(),
            name="host_sampler",
        )
        self._periodic_tasks.append(asyncio.create_task(
            self._tick_frame_windows(),
            name="frame_window",
        ))
        if settings.gps.evict_interval_seconds > 0:
            self._periodic_tasks.append(asyncio.create_task(
                self._evict_gps_buckets(),
                name="gps_eviction",
            ))

        logger.info(
            f"TelemetryEngine started: images={settings.watch.images_path}, "
            f"gps={settings.watch.gps_path}, watching={watch}"
        )

    async def stop(self) -> None:
        """Stop the watcher and tasks; route every event already buffered."""
        if not self.started:
            return
        logger.info("TelemetryEngine stopping...")

        await asyncio.to_thread(self.watcher.stop)

        for task in self._periodic_tasks:
            task.cancel()
        for task in self._periodic_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._periodic_tasks.clear()

        self.sampler.stop()
        if self._sampler_task is not None:
            try:
                await asyncio.wait_for(
                    self._sampler_task,
                    timeout=self.settings.host.cpu_sample_seconds + 1.0,
                )
            except asyncio.TimeoutError:
                pass
            self._sampler_task = None

        self.dispatcher.stop()
        if self._dispatcher_task is not None:
            await self._dispatcher_task
            self._dispatcher_task = None

        logger.info("TelemetryEngine stopped")

    async def _tick_frame_windows(self) -> None:
        window = self.frame_tracker.window_seconds
        while True:
            await asyncio.sleep(window)
            self.frame_tracker.tick_window()

    async def _evict_gps_buckets(self) -> None:
        interval = self.settings.gps.evict_interval_seconds
        retention = self.settings.gps.retention_seconds
        while True:
            await asyncio.sleep(interval)
            self.gps_table.evict(retention)

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    def top(self) -> Optional[TopSnapshot]:
        """Latest host snapshot, or None before the first sample."""
        return self.sampler.snapshot

    def last_frame(self) -> Optional[LastFrame]:
        return self.frame_tracker.last_frame()

    def gps(self) -> dict:
        """GPS averages per metric as plain data, with the stale flag."""
        snapshot = self.gps_table.snapshot()
        return {
            "stale": self.gps_table.stale,
            "metrics": {
                metric: [avg.to_dict() for avg in averages]
                for metric, averages in snapshot.items()
            },
        }

    def metrics(self) -> dict:
        """Engine metrics for observability."""
        return {
            "uptime_seconds": round(self.uptime_seconds, 1),
            "watching": self.watcher.running,
            "events_seen": self.watcher.events_seen,
            "buffer": self.buffer.metrics(),
            "dispatcher": self.dispatcher.get_metrics(),
            "gps": self.gps_table.get_metrics(),
            "host_sampler": self.sampler.get_metrics(),
            "frames": self.frame_tracker.snapshot().to_dict(),
        }
