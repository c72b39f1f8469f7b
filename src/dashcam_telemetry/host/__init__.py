"""
Host Module
===========

Host CPU/memory sampling.

    - HostStatsSource: Protocol for raw counter backends
    - PsutilStatsSource: psutil implementation
    - HostSampler: Periodic TopSnapshot publisher
"""

from dashcam_telemetry.host.sampler import HostSampler
from dashcam_telemetry.host.stats import HostStatsSource, PsutilStatsSource

__all__ = ["HostSampler", "HostStatsSource", "PsutilStatsSource"]
