"""Tests for host sampling and the Top snapshot."""

import asyncio
from collections import namedtuple

import psutil
import pytest

from conftest import FakeStatsSource
from dashcam_telemetry.aggregation import FrameWindowTracker
from dashcam_telemetry.errors import ConfigurationError, SamplerError
from dashcam_telemetry.host import HostSampler, PsutilStatsSource
from dashcam_telemetry.models.host import CPUCounters, CPUUsage


def _sampler(source, tracker=None, **kwargs):
    kwargs.setdefault("cpu_sample_seconds", 0)
    kwargs.setdefault("clock", lambda: 1000.0)
    return HostSampler(source, tracker or FrameWindowTracker(), **kwargs)


class TestCPUUsage:
    """Tests for CPU percentage computation."""

    def test_percentages(self):
        before = CPUCounters(user=100, system=50, idle=800, nice=50, total=1000)
        after = CPUCounters(user=130, system=60, idle=950, nice=60, total=1200)

        usage = CPUUsage.between(before, after)

        assert usage.user == pytest.approx(15.0)
        assert usage.system == pytest.approx(5.0)
        assert usage.idle == pytest.approx(75.0)
        assert usage.nice == pytest.approx(5.0)
        assert usage.total == pytest.approx(100.0)

    def test_no_elapsed_time(self):
        counters = CPUCounters(user=1, system=1, idle=1, nice=1, total=4)
        usage = CPUUsage.between(counters, counters)
        assert usage.to_dict() == {
            "user": 0.0, "system": 0.0, "idle": 0.0, "nice": 0.0, "total": 0.0,
        }


class TestTick:
    """Tests for HostSampler.tick."""

    def test_builds_snapshot(self, fake_stats):
        tracker = FrameWindowTracker(window_seconds=1)
        tracker.observe("a.jpg", 300, now=0.0)
        tracker.tick_window()
        sampler = _sampler(fake_stats, tracker)

        snapshot = asyncio.run(sampler.tick())

        assert snapshot is sampler.snapshot
        assert snapshot.cpu.user == pytest.approx(10.0)
        assert snapshot.cpu.idle == pytest.approx(80.0)
        assert snapshot.cpu.total == pytest.approx(100.0)
        assert snapshot.memory.total == 4 * 1024**3
        assert snapshot.frame_stats.framerate == 1
        assert snapshot.frame_stats.average_frame_size == 300
        assert snapshot.sampled_at == 1000.0
        assert not snapshot.stale

    def test_snapshot_replaced_each_tick(self, fake_stats):
        sampler = _sampler(fake_stats)

        async def scenario():
            first = await sampler.tick()
            second = await sampler.tick()
            return first, second

        first, second = asyncio.run(scenario())
        assert first is not second
        assert not first.stale

    def test_none_before_first_tick(self, fake_stats):
        assert _sampler(fake_stats).snapshot is None

    def test_failure_marks_snapshot_stale(self, fake_stats):
        sampler = _sampler(fake_stats)

        async def scenario():
            await sampler.tick()
            fake_stats.fail = True
            return await sampler.tick()

        snapshot = asyncio.run(scenario())

        assert sampler.failed
        assert snapshot.stale
        assert "unavailable" in snapshot.error
        assert snapshot.cpu.user == pytest.approx(10.0)

    def test_failure_is_final(self, fake_stats):
        sampler = _sampler(fake_stats)

        async def scenario():
            fake_stats.fail = True
            await sampler.tick()
            fake_stats.fail = False
            calls = fake_stats.calls
            await sampler.tick()
            return calls

        calls = asyncio.run(scenario())
        assert fake_stats.calls == calls
        assert sampler.snapshot is None
        assert sampler.get_metrics()["failed"] is True

    def test_sampler_error_kept(self):
        class Broken(FakeStatsSource):
            def memory(self):
                raise SamplerError("meminfo gone")

        sampler = _sampler(Broken())
        asyncio.run(sampler.tick())
        assert sampler.get_metrics()["error"] == "meminfo gone"

    @pytest.mark.parametrize(
        "kwargs",
        [{"interval_seconds": 0}, {"cpu_sample_seconds": -1}],
    )
    def test_invalid_config(self, fake_stats, kwargs):
        with pytest.raises(ConfigurationError):
            HostSampler(fake_stats, FrameWindowTracker(), **kwargs)


class TestRun:
    """Tests for the sampling loop."""

    def test_runs_until_stopped(self, fake_stats):
        sampler = _sampler(fake_stats, interval_seconds=0.01)

        async def scenario():
            task = asyncio.create_task(sampler.run())
            for _ in range(100):
                if sampler.get_metrics()["ticks"] >= 3:
                    break
                await asyncio.sleep(0.01)
            sampler.stop()
            await asyncio.wait_for(task, timeout=1.0)

        asyncio.run(scenario())
        assert sampler.get_metrics()["ticks"] >= 3

    def test_exits_after_failure(self, fake_stats):
        fake_stats.fail = True
        sampler = _sampler(fake_stats, interval_seconds=0.01)

        asyncio.run(asyncio.wait_for(sampler.run(), timeout=1.0))

        assert sampler.failed


_LinuxTimes = namedtuple(
    "scputimes",
    "user nice system idle iowait irq softirq steal guest guest_nice",
)


class TestPsutilStatsSource:
    """Tests for the psutil-backed source."""

    def test_guest_time_counted_once(self, monkeypatch):
        times = _LinuxTimes(
            user=50.0, nice=10.0, system=20.0, idle=100.0, iowait=5.0,
            irq=1.0, softirq=2.0, steal=0.0, guest=30.0, guest_nice=8.0,
        )
        monkeypatch.setattr(psutil, "cpu_times", lambda: times)

        counters = PsutilStatsSource().cpu_times()

        assert counters.total == pytest.approx(188.0)
        assert counters.user == 50.0
        assert counters.nice == 10.0

    def test_platform_without_guest_fields(self, monkeypatch):
        simple = namedtuple("scputimes", "user system idle")
        monkeypatch.setattr(psutil, "cpu_times", lambda: simple(3.0, 2.0, 5.0))

        counters = PsutilStatsSource().cpu_times()

        assert counters.total == pytest.approx(10.0)
        assert counters.nice == 0.0

    def test_psutil_error_wrapped(self, monkeypatch):
        def broken():
            raise psutil.AccessDenied()

        monkeypatch.setattr(psutil, "cpu_times", broken)
        with pytest.raises(SamplerError):
            PsutilStatsSource().cpu_times()
