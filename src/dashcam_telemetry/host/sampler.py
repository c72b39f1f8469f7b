"""
Host Snapshot Sampler
=====================

Periodically publishes an immutable TopSnapshot combining host CPU and
memory usage with the frame tracker's published statistics.

Each tick:
    1. Reads memory once
    2. Reads CPU counters, waits cpu_sample_seconds, reads them again
    3. Computes per-category percentages over that interval
    4. Replaces the published snapshot wholesale

Failure handling:
    If the stats source raises, the sampler logs the error, marks the last
    snapshot stale and stops sampling. The rest of the engine keeps
    running and readers keep seeing the last good values.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Callable, Optional

from dashcam_telemetry.aggregation.frame_tracker import FrameWindowTracker
from dashcam_telemetry.errors import ConfigurationError, SamplerError
from dashcam_telemetry.host.stats import HostStatsSource
from dashcam_telemetry.models.host import CPUUsage, TopSnapshot


logger = logging.getLogger(__name__)


class HostSampler:
    """
    Builds TopSnapshots from a host stats source.

    Attributes:
        source: Host stats backend
        frame_tracker: Source of frame statistics
        interval_seconds: Delay between ticks in run()
        cpu_sample_seconds: Delay between the two CPU reads of a tick
        failed: True once the source has raised

    Example:
        sampler = HostSampler(PsutilStatsSource(), tracker)
        task = asyncio.create_task(sampler.run())

        snapshot = sampler.snapshot  # None until the first tick completes
    """

    def __init__(
        self,
        source: HostStatsSource,
        frame_tracker: FrameWindowTracker,
        interval_seconds: float = 1.0,
        cpu_sample_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if interval_seconds <= 0:
            raise ConfigurationError("interval_seconds must be positive")
        if cpu_sample_seconds < 0:
            raise ConfigurationError("cpu_sample_seconds must be >= 0")

        self.source = source
        self.frame_tracker = frame_tracker
        self.interval_seconds = interval_seconds
        self.cpu_sample_seconds = cpu_sample_seconds
        self._clock = clock

        self._snapshot: Optional[TopSnapshot] = None
        self._error: Optional[SamplerError] = None
        self._ticks: int = 0
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

    @property
    def snapshot(self) -> Optional[TopSnapshot]:
        """Last published snapshot, or None before the first tick."""
        return self._snapshot

    @property
    def failed(self) -> bool:
        return self._error is not None

    async def tick(self) -> Optional[TopSnapshot]:
        """
        Sample the host and publish a new snapshot.

        Returns:
            The new snapshot, or the unchanged (stale) one if the sampler
            has failed.
        """
        if self._error is not None:
            return self._snapshot

        try:
            memory = self.source.memory()
            before = self.source.cpu_times()
            await asyncio.sleep(self.cpu_sample_seconds)
            after = self.source.cpu_times()
        except Exception as e:
            self._fail(e)
            return self._snapshot

        self._snapshot = TopSnapshot(
            frame_stats=self.frame_tracker.snapshot(),
            cpu=CPUUsage.between(before, after),
            memory=memory,
            sampled_at=self._clock(),
        )
        self._ticks += 1
        return self._snapshot

    def _fail(self, exc: Exception) -> None:
        error = exc if isinstance(exc, SamplerError) else SamplerError(str(exc))
        self._error = error
        logger.error(
            f"Host sampling failed, keeping last snapshot as stale: {error}"
        )
        if self._snapshot is not None:
            self._snapshot = dataclasses.replace(
                self._snapshot, stale=True, error=str(error)
            )

    async def run(self) -> None:
        """Tick every interval_seconds until stopped or failed."""
        self._running = True
        self._stop_event.clear()
        logger.info(
            f"HostSampler started: interval={self.interval_seconds}s, "
            f"cpu_sample={self.cpu_sample_seconds}s"
        )

        while self._running:
            await self.tick()
            if self._error is not None:
                logger.warning("HostSampler stopped producing snapshots")
                break
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.interval_seconds,
                )
                break
            except asyncio.TimeoutError:
                pass

        self._running = False
        logger.info("HostSampler stopped")

    def stop(self) -> None:
        self._running = False
        self._stop_event.set()

    def get_metrics(self) -> dict:
        """Get sampler metrics for observability."""
        return {
            "ticks": self._ticks,
            "failed": self.failed,
            "error": str(self._error) if self._error else None,
        }
