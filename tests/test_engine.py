"""Tests for the telemetry engine lifecycle."""

import asyncio
import sys

import pytest

from conftest import make_batch, make_fix
from dashcam_telemetry.engine import TelemetryEngine
from dashcam_telemetry.errors import ConfigurationError


async def _wait_for(predicate, timeout: float = 2.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.02)
    return predicate()


class TestLifecycle:
    """Tests for TelemetryEngine.start and stop."""

    def test_routes_buffered_events(self, settings, fake_stats, watch_dirs):
        images, gps = watch_dirs
        frame = images / "frame_0001.jpg"
        frame.write_bytes(b"x" * 64)
        batch = gps / "0001.json"
        batch.write_bytes(make_batch(make_fix(hdop=1.5)))
        settings.gps.load_existing = False
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start(watch=False)
            engine.buffer.put_nowait(str(frame))
            engine.buffer.put_nowait(str(batch))
            await _wait_for(lambda: engine.dispatcher.get_metrics()["routed"] == {
                "frame": 1, "gps_batch": 1,
            })
            await engine.stop()

        asyncio.run(scenario())

        assert engine.last_frame().filename == "frame_0001.jpg"
        assert engine.gps()["metrics"]["hdop"][0]["value"] == 1.5
        assert not engine.started

    def test_stop_drains_buffer(self, settings, fake_stats, watch_dirs):
        images, _ = watch_dirs
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start(watch=False)
            for i in range(20):
                frame = images / f"frame_{i}.jpg"
                frame.write_bytes(b"x")
                engine.buffer.put_nowait(str(frame))
            await engine.stop()

        asyncio.run(scenario())

        assert engine.frame_tracker.total_frame_count == 20
        assert engine.buffer.size == 0

    def test_host_snapshot_published(self, settings, fake_stats):
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start(watch=False)
            ok = await _wait_for(lambda: engine.top() is not None)
            await engine.stop()
            return ok

        assert asyncio.run(scenario())
        assert engine.top().cpu.user == pytest.approx(10.0)

    def test_sampler_failure_leaves_engine_running(self, settings, fake_stats, watch_dirs):
        images, _ = watch_dirs
        frame = images / "frame.jpg"
        frame.write_bytes(b"x")
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start(watch=False)
            await _wait_for(lambda: engine.top() is not None)
            fake_stats.fail = True
            await _wait_for(lambda: engine.sampler.failed)
            engine.buffer.put_nowait(str(frame))
            routed = await _wait_for(lambda: engine.frame_tracker.total_frame_count == 1)
            await engine.stop()
            return routed

        assert asyncio.run(scenario())
        assert engine.top().stale
        assert engine.metrics()["host_sampler"]["failed"] is True

    def test_gps_backfill(self, settings, fake_stats, watch_dirs):
        _, gps = watch_dirs
        (gps / "0001.json").write_bytes(make_batch(make_fix(hdop=1.2)))
        (gps / "0002.json").write_bytes(make_batch(make_fix(hdop=2.0)))
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start(watch=False)
            await engine.stop()

        asyncio.run(scenario())

        [avg] = engine.gps()["metrics"]["hdop"]
        assert avg["count"] == 2
        assert avg["value"] == pytest.approx(1.6)

    def test_missing_gps_dir_skips_backfill(self, settings, fake_stats, tmp_path):
        settings.watch.gps_path = str(tmp_path / "absent")
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start(watch=False)
            await engine.stop()

        asyncio.run(scenario())
        assert engine.gps()["stale"] is False

    def test_start_twice_is_noop(self, settings, fake_stats):
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start(watch=False)
            task = engine._dispatcher_task
            await engine.start(watch=False)
            same = engine._dispatcher_task is task
            await engine.stop()
            return same

        assert asyncio.run(scenario())

    def test_stop_before_start(self, settings, fake_stats):
        engine = TelemetryEngine(settings, stats_source=fake_stats)
        asyncio.run(engine.stop())
        assert not engine.started

    def test_gps_eviction_task(self, settings, fake_stats):
        settings.gps.evict_interval_seconds = 0.02
        settings.gps.retention_seconds = 60
        engine = TelemetryEngine(settings, stats_source=fake_stats)
        engine.gps_table.ingest_batch(make_batch(make_fix(systemtime="2001-01-01T00:00:00Z")))

        async def scenario():
            await engine.start(watch=False)
            ok = await _wait_for(lambda: engine.gps_table.snapshot()["hdop"] == [])
            await engine.stop()
            return ok

        assert asyncio.run(scenario())

    def test_frame_window_task(self, settings, fake_stats, watch_dirs):
        images, _ = watch_dirs
        settings.frames.window_seconds = 1
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start(watch=False)
            for i in range(3):
                frame = images / f"f{i}.jpg"
                frame.write_bytes(b"x" * 10)
                engine.buffer.put_nowait(str(frame))
            ok = await _wait_for(
                lambda: engine.frame_tracker.snapshot().framerate == 3,
                timeout=3.0,
            )
            await engine.stop()
            return ok

        assert asyncio.run(scenario())

    def test_metrics_shape(self, settings, fake_stats):
        engine = TelemetryEngine(settings, stats_source=fake_stats)
        metrics = engine.metrics()
        assert set(metrics) == {
            "uptime_seconds", "watching", "events_seen", "buffer",
            "dispatcher", "gps", "host_sampler", "frames",
        }
        assert metrics["watching"] is False


@pytest.mark.skipif(sys.platform != "linux", reason="relies on inotify delivery timing")
class TestWatching:
    """Tests with the real filesystem watcher."""

    def test_created_files_are_ingested(self, settings, fake_stats, watch_dirs):
        images, gps = watch_dirs
        settings.gps.load_existing = False
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            await engine.start()
            (images / "frame_0001.jpg").write_bytes(b"x" * 32)
            (gps / "0001.json").write_bytes(make_batch(make_fix(hdop=3.0)))
            ok = await _wait_for(
                lambda: engine.frame_tracker.total_frame_count >= 1
                and engine.gps_table.snapshot()["hdop"] != [],
                timeout=5.0,
            )
            await engine.stop()
            return ok

        assert asyncio.run(scenario())
        assert engine.watcher.events_seen >= 2
        assert not engine.watcher.running

    def test_unwatchable_directory(self, settings, fake_stats, tmp_path):
        settings.watch.images_path = str(tmp_path / "absent")
        engine = TelemetryEngine(settings, stats_source=fake_stats)

        async def scenario():
            with pytest.raises(ConfigurationError):
                await engine.start()
            await engine.stop()

        asyncio.run(scenario())
