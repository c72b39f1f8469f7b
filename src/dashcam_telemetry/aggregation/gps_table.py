"""
GPS Aggregate Table
===================

Per-minute running averages of GPS quality metrics.

This module:
    - Parses GPS batch payloads (JSON arrays of fixes)
    - Folds seven metrics per fix into minute buckets
    - Returns sorted point-in-time snapshots for readers
    - Evicts buckets that have not been updated within a retention period

Bucketing:
    Buckets are keyed by the fix's own device timestamp truncated to the
    minute, never by arrival time. A batch written late still lands in the
    minute it was recorded.

Locking:
    One re-entrant lock guards the whole table. A batch holds it for all
    of its folds, so two batches never interleave, and snapshot/evict see
    either all or none of a batch.
"""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from dashcam_telemetry.aggregation.averager import Average
from dashcam_telemetry.errors import ConfigurationError, TransientIngestError
from dashcam_telemetry.models.gps import INVALID_DOP, GPSFix, parse_batch


logger = logging.getLogger(__name__)


DOP_METRICS = ("gdop", "hdop", "pdop", "tdop", "vdop")
SATELLITE_METRICS = ("sat_seen", "sat_used")
METRICS = DOP_METRICS + SATELLITE_METRICS

# Default retention of a bucket after its last update.
DEFAULT_RETENTION_SECONDS = 2 * 60 * 60


def bucket_for(ts: datetime) -> datetime:
    """Minute bucket key of a timestamp."""
    return ts.replace(second=0, microsecond=0)


class GPSAggregateTable:
    """
    Table of per-minute Averages keyed by metric name.

    Attributes:
        legacy_vdop_from_tdop: Fold vdop from the tdop field
        stale: True if the most recent batch failed to ingest

    Example:
        table = GPSAggregateTable()
        table.ingest_batch(Path("gps/0001.json").read_bytes())

        for avg in table.snapshot()["hdop"]:
            print(avg.timestamp, avg.value)
    """

    def __init__(self, legacy_vdop_from_tdop: bool = False) -> None:
        self.legacy_vdop_from_tdop = legacy_vdop_from_tdop

        self._lock = threading.RLock()
        self._averages: Dict[str, Dict[datetime, Average]] = {
            metric: {} for metric in METRICS
        }

        # Observability
        self._batches_ingested: int = 0
        self._batches_failed: int = 0
        self._fixes_folded: int = 0
        self._last_error: Optional[str] = None

        logger.info(
            f"GPSAggregateTable initialized: metrics={len(METRICS)}, "
            f"legacy_vdop_from_tdop={legacy_vdop_from_tdop}"
        )

    @property
    def stale(self) -> bool:
        return self._last_error is not None

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def ingest_batch(self, raw: bytes, source: str = "") -> int:
        """
        Parse a batch payload and fold every fix that has a fix.

        An empty payload is a no-op.

        Args:
            raw: JSON array of GPS fix records
            source: Path the payload was read from (for logging)

        Returns:
            Number of fixes folded.

        Raises:
            TransientIngestError: If the payload is not a JSON array of fixes
        """
        if not raw or not raw.strip():
            return 0

        try:
            fixes = parse_batch(raw)
        except ValidationError as e:
            with self._lock:
                self._batches_failed += 1
                self._last_error = f"{source or '<batch>'}: {e.error_count()} invalid field(s)"
            raise TransientIngestError(
                f"Invalid GPS batch {source or '<batch>'}: {e}", path=source
            ) from e

        with self._lock:
            folded = self._fold_fixes(fixes)
            self._batches_ingested += 1
            self._fixes_folded += folded
            self._last_error = None

        logger.debug(f"GPS batch {source or '<batch>'}: {folded}/{len(fixes)} fixes folded")
        return folded

    def _fold_fixes(self, fixes: Iterable[GPSFix]) -> int:
        folded = 0
        for fix in fixes:
            if not fix.has_fix:
                continue

            ts = fix.device_time
            if ts is None:
                logger.warning("Skipping GPS fix without systemtime/timestamp")
                continue
            bucket = bucket_for(ts)

            if fix.dop is not None:
                dop = fix.dop
                vdop = dop.tdop if self.legacy_vdop_from_tdop else dop.vdop
                self.fold("gdop", dop.gdop, bucket, ts)
                self.fold("hdop", dop.hdop, bucket, ts)
                self.fold("pdop", dop.pdop, bucket, ts)
                self.fold("tdop", dop.tdop, bucket, ts)
                self.fold("vdop", vdop, bucket, ts)

            if fix.satellites is not None:
                self.fold("sat_seen", float(fix.satellites.seen), bucket, ts)
                self.fold("sat_used", float(fix.satellites.used), bucket, ts)

            folded += 1
        return folded

    def fold(self, metric: str, value: float, bucket: datetime, ts: datetime) -> None:
        """
        Fold one value into the (metric, bucket) Average.

        The receiver's invalid-DOP marker (exactly 99.99) is folded as 0.

        Raises:
            KeyError: If metric is not one of METRICS
        """
        if value == INVALID_DOP:
            value = 0.0

        with self._lock:
            buckets = self._averages[metric]
            average = buckets.get(bucket)
            if average is None:
                buckets[bucket] = Average(value, ts)
            else:
                average.fold(value, ts)

    def load_directory(self, path: str, extensions: Iterable[str] = (".json",)) -> int:
        """
        Fold every GPS batch already present in a directory.

        Files that cannot be read or parsed are logged and skipped.

        Returns:
            Number of files ingested.

        Raises:
            TransientIngestError: If the directory cannot be listed
        """
        suffixes = tuple(ext.lower() for ext in extensions)
        try:
            entries = sorted(Path(path).iterdir())
        except OSError as e:
            raise TransientIngestError(f"Cannot list GPS directory {path}: {e}", path=path) from e

        loaded = 0
        for entry in entries:
            if not entry.is_file() or not entry.name.lower().endswith(suffixes):
                continue
            try:
                self.ingest_batch(entry.read_bytes(), source=str(entry))
                loaded += 1
            except OSError as e:
                logger.warning(f"Skipping unreadable GPS batch {entry}: {e}")
            except TransientIngestError as e:
                logger.warning(f"Skipping GPS batch: {e}")

        logger.info(f"Loaded {loaded} GPS batch(es) from {path}")
        return loaded

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    def snapshot(self) -> Dict[str, List[Average]]:
        """
        Point-in-time copy of the table.

        Returns:
            For every metric, copies of its Averages sorted ascending by
            timestamp.
        """
        with self._lock:
            return {
                metric: sorted(
                    (avg.copy() for avg in buckets.values()),
                    key=lambda avg: avg.timestamp,
                )
                for metric, buckets in self._averages.items()
            }

    def evict(self, max_age: float = DEFAULT_RETENTION_SECONDS, now: Optional[datetime] = None) -> int:
        """
        Remove buckets not updated within max_age seconds of now.

        Args:
            max_age: Retention in seconds
            now: Reference time (defaults to current UTC time)

        Returns:
            Number of buckets removed across all metrics.

        Raises:
            ConfigurationError: If max_age is not positive
        """
        if max_age <= 0:
            raise ConfigurationError("max_age must be positive")
        if now is None:
            now = datetime.now(timezone.utc)

        removed = 0
        with self._lock:
            for metric, buckets in self._averages.items():
                expired = [
                    bucket for bucket, avg in buckets.items()
                    if (now - avg.timestamp).total_seconds() > max_age
                ]
                for bucket in expired:
                    del buckets[bucket]
                removed += len(expired)

        if removed:
            logger.info(f"Evicted {removed} GPS bucket(s) older than {max_age:.0f}s")
        return removed

    def get_metrics(self) -> dict:
        """Get table metrics for observability."""
        with self._lock:
            return {
                "batches_ingested": self._batches_ingested,
                "batches_failed": self._batches_failed,
                "fixes_folded": self._fixes_folded,
                "buckets": sum(len(b) for b in self._averages.values()),
                "stale": self.stale,
                "last_error": self._last_error,
            }
