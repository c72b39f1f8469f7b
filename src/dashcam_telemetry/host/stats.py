"""
Host Stats Source
=================

Raw CPU and memory counters of the host.

This module provides the HostStatsSource protocol and its psutil
implementation. Sources return cumulative counters; percentages are
computed by the HostSampler from two CPU reads.
"""

import logging
from typing import Protocol

import psutil

from dashcam_telemetry.errors import SamplerError
from dashcam_telemetry.models.host import CPUCounters, MemoryCounters


logger = logging.getLogger(__name__)


class HostStatsSource(Protocol):
    """
    Protocol for host stats backends.

    Implementations raise SamplerError (or any exception) on failure.
    """

    def cpu_times(self) -> CPUCounters:
        """Cumulative CPU time per category."""
        ...

    def memory(self) -> MemoryCounters:
        """Current memory figures in bytes."""
        ...


def _cpu_total(times) -> float:
    """Sum of all CPU time categories, with guest time counted once."""
    # Linux already includes guest and guest_nice in user and nice.
    guest = getattr(times, "guest", 0.0) + getattr(times, "guest_nice", 0.0)
    return float(sum(times)) - guest


class PsutilStatsSource:
    """
    psutil-backed host stats.

    Categories missing on a platform (nice on Windows, cached on macOS)
    are reported as 0. The CPU total is the sum of every category psutil
    reports (guest time counted once), so user + system + idle + nice may
    be less than total when iowait, irq or steal time is present.
    """

    def cpu_times(self) -> CPUCounters:
        try:
            times = psutil.cpu_times()
        except (psutil.Error, OSError) as e:
            raise SamplerError(f"Reading CPU times failed: {e}") from e

        return CPUCounters(
            user=times.user,
            system=times.system,
            idle=times.idle,
            nice=getattr(times, "nice", 0.0),
            total=_cpu_total(times),
        )

    def memory(self) -> MemoryCounters:
        try:
            vm = psutil.virtual_memory()
            swap = psutil.swap_memory()
        except (psutil.Error, OSError) as e:
            raise SamplerError(f"Reading memory stats failed: {e}") from e

        return MemoryCounters(
            total=vm.total,
            used=vm.used,
            cached=getattr(vm, "cached", 0),
            free=vm.free,
            active=getattr(vm, "active", 0),
            inactive=getattr(vm, "inactive", 0),
            swap_total=swap.total,
            swap_used=swap.used,
            swap_free=swap.free,
        )
