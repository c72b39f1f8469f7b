"""
Test Configuration
==================

Pytest fixtures and test doubles for dashcam-telemetry.
"""

import json
from typing import List, Optional

import pytest

from dashcam_telemetry.config import Settings
from dashcam_telemetry.models.host import CPUCounters, MemoryCounters


class FakeStatsSource:
    """Host stats source returning scripted CPU counters."""

    def __init__(self, cpu_samples: Optional[List[CPUCounters]] = None) -> None:
        self.cpu_samples = list(cpu_samples or [])
        self.fail = False
        self.calls = 0
        self._tick = 0

    def cpu_times(self) -> CPUCounters:
        self.calls += 1
        if self.fail:
            raise OSError("/proc/stat unavailable")
        if self.cpu_samples:
            return self.cpu_samples.pop(0)
        self._tick += 1
        return CPUCounters(
            user=10.0 * self._tick,
            system=5.0 * self._tick,
            idle=80.0 * self._tick,
            nice=5.0 * self._tick,
            total=100.0 * self._tick,
        )

    def memory(self) -> MemoryCounters:
        self.calls += 1
        if self.fail:
            raise OSError("/proc/meminfo unavailable")
        return MemoryCounters(
            total=4 * 1024**3,
            used=1 * 1024**3,
            cached=512 * 1024**2,
            free=2 * 1024**3,
            active=1024**3,
            inactive=256 * 1024**2,
            swap_total=1024**3,
            swap_used=0,
            swap_free=1024**3,
        )


def make_fix(
    hdop: float = 1.2,
    fix: str = "3D",
    systemtime: Optional[str] = "2024-03-02T10:15:42Z",
    gdop: float = 1.9,
    pdop: float = 1.6,
    tdop: float = 1.1,
    vdop: float = 1.0,
    seen: Optional[int] = 14,
    used: Optional[int] = 9,
) -> dict:
    """Create a GPS fix record as written by the capture process."""
    record = {
        "dop": {
            "gdop": gdop,
            "hdop": hdop,
            "pdop": pdop,
            "tdop": tdop,
            "vdop": vdop,
            "xdop": None,
            "ydop": None,
        },
        "fix": fix,
        "systemtime": systemtime,
        "timestamp": systemtime,
    }
    if seen is not None and used is not None:
        record["satellites"] = {"seen": seen, "used": used}
    return record


def make_batch(*fixes: dict) -> bytes:
    return json.dumps(list(fixes)).encode()


@pytest.fixture
def fake_stats():
    """Provide a scripted host stats source."""
    return FakeStatsSource()


@pytest.fixture
def watch_dirs(tmp_path):
    """Provide images and GPS directories laid out like the device."""
    images = tmp_path / "images"
    gps = tmp_path / "gps"
    images.mkdir()
    gps.mkdir()
    return images, gps


@pytest.fixture
def settings(watch_dirs):
    """Provide settings pointing at temporary directories."""
    images, gps = watch_dirs
    return Settings.model_validate({
        "watch": {"images_path": str(images), "gps_path": str(gps)},
        "host": {"interval_seconds": 0.05, "cpu_sample_seconds": 0},
        "logging": {"format": "text"},
    })


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep configuration tests independent of the caller's environment."""
    for name in (
        "DASHCAM_IMAGES_PATH",
        "DASHCAM_GPS_PATH",
        "DASHCAM_MAX_QUEUE_SIZE",
        "DASHCAM_WINDOW_SECONDS",
        "DASHCAM_GPS_RETENTION_SECONDS",
        "DASHCAM_GPS_EVICT_INTERVAL",
        "DASHCAM_PORT",
        "DASHCAM_LOG_LEVEL",
        "PORT",
    ):
        monkeypatch.delenv(name, raising=False)
