"""
Stream Module
=============

Filesystem event ingestion components.

This module provides the ingestion layer of the telemetry engine:
    - EventBuffer: Async-safe bounded queue (drops oldest on overflow)
    - DirectoryWatcher: watchdog observer feeding created paths into the buffer

Example:
    from dashcam_telemetry.stream import DirectoryWatcher, EventBuffer

    buffer = EventBuffer(maxsize=1000)
    watcher = DirectoryWatcher(["/mnt/data/images", "/mnt/data/gps"], buffer)
    watcher.start(asyncio.get_running_loop())

    while True:
        path = await buffer.get()
        dispatcher.route(path)
"""

from dashcam_telemetry.stream.buffer import EventBuffer
from dashcam_telemetry.stream.watcher import DirectoryWatcher


__all__ = [
    "EventBuffer",
    "DirectoryWatcher",
]
