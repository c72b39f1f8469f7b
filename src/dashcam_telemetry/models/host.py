"""
Host Models
===========

Raw counters returned by the host stats source, and the immutable Top
snapshot published by the host sampler.
"""

from dataclasses import dataclass
from typing import Optional

from dashcam_telemetry.models.frame import FrameStats


@dataclass(frozen=True, slots=True)
class CPUCounters:
    """Cumulative CPU time per category, in seconds (or jiffies)."""

    user: float
    system: float
    idle: float
    nice: float
    total: float


@dataclass(frozen=True, slots=True)
class MemoryCounters:
    """Memory figures in bytes."""

    total: int
    used: int
    cached: int
    free: int
    active: int
    inactive: int
    swap_total: int
    swap_used: int
    swap_free: int

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "used": self.used,
            "cached": self.cached,
            "free": self.free,
            "active": self.active,
            "inactive": self.inactive,
            "swap_total": self.swap_total,
            "swap_used": self.swap_used,
            "swap_free": self.swap_free,
        }


@dataclass(frozen=True, slots=True)
class CPUUsage:
    """CPU usage per category as a percentage of the sampled interval."""

    user: float
    system: float
    idle: float
    nice: float
    total: float

    @classmethod
    def between(cls, before: CPUCounters, after: CPUCounters) -> "CPUUsage":
        """Percentages of each category over the interval [before, after]."""
        total = after.total - before.total
        if total <= 0:
            return cls(user=0.0, system=0.0, idle=0.0, nice=0.0, total=0.0)

        def pct(a: float, b: float) -> float:
            return (a - b) / total * 100

        return cls(
            user=pct(after.user, before.user),
            system=pct(after.system, before.system),
            idle=pct(after.idle, before.idle),
            nice=pct(after.nice, before.nice),
            total=pct(after.total, before.total),
        )

    def to_dict(self) -> dict:
        return {
            "user": round(self.user, 2),
            "system": round(self.system, 2),
            "idle": round(self.idle, 2),
            "nice": round(self.nice, 2),
            "total": round(self.total, 2),
        }


@dataclass(frozen=True, slots=True)
class TopSnapshot:
    """
    Host and frame telemetry at one sampling tick.

    Replaced wholesale on every tick, never partially updated.

    Attributes:
        frame_stats: Frame tracker snapshot taken at the tick
        cpu: CPU usage over the tick's sampling interval
        memory: Memory figures sampled at the tick
        sampled_at: UNIX time the snapshot was built
        stale: True once the sampler has stopped after a failure
    """

    frame_stats: FrameStats
    cpu: CPUUsage
    memory: MemoryCounters
    sampled_at: float
    stale: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "frame_stats": self.frame_stats.to_dict(),
            "cpu": self.cpu.to_dict(),
            "memory": self.memory.to_dict(),
            "sampled_at": round(self.sampled_at, 3),
            "stale": self.stale,
            "error": self.error,
        }
