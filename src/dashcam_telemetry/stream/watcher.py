"""
Directory Watcher
=================

Filesystem watch adapter feeding created-file paths into an EventBuffer.

This module provides the DirectoryWatcher class which:
    - Schedules a watchdog observer on the images and GPS directories
    - Forwards "file created" events to the event loop thread
    - Ignores directories and every other event type

Design Rules:
    - Does NOT stat or classify paths (the dispatcher does)
    - Never blocks the observer thread: the buffer drops oldest on overflow
    - Watch primitives may coalesce or drop bursts; no delivery guarantee
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from dashcam_telemetry.stream.buffer import EventBuffer


logger = logging.getLogger(__name__)


class _CreatedHandler(FileSystemEventHandler):
    """Forwards file-creation events to the buffer on the event loop."""

    def __init__(self, watcher: "DirectoryWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def on_created(self, event) -> None:
        if event.is_directory:
            return
        self._watcher.forward(event.src_path)


class DirectoryWatcher:
    """
    Watches directories for created files.

    Attributes:
        paths: Directories being watched
        buffer: EventBuffer receiving created paths
        events_seen: Number of creation events forwarded

    Example:
        buffer = EventBuffer(maxsize=1000)
        watcher = DirectoryWatcher(["/mnt/data/images"], buffer)

        watcher.start(asyncio.get_running_loop())
        ...
        watcher.stop()
    """

    def __init__(self, paths: Iterable[str], buffer: EventBuffer) -> None:
        self.paths: List[str] = [p for p in paths if p]
        self.buffer = buffer
        self.events_seen: int = 0

        self._observer: Optional[Observer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        Start watching.

        Args:
            loop: Event loop owning the buffer

        Raises:
            OSError: If a directory cannot be watched
        """
        if self._observer is not None:
            logger.warning("DirectoryWatcher already started")
            return

        self._loop = loop
        handler = _CreatedHandler(self)
        observer = Observer()
        for path in self.paths:
            observer.schedule(handler, path, recursive=False)
            logger.info(f"Watching directory: {path}")
        try:
            observer.start()
        except OSError:
            observer.stop()
            raise
        self._observer = observer

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the observer thread. Events already buffered are kept."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=timeout)
        self._observer = None
        logger.info(f"DirectoryWatcher stopped after {self.events_seen} event(s)")

    def forward(self, path) -> None:
        """Hand a created path to the event loop (called from observer thread)."""
        if isinstance(path, bytes):
            path = path.decode(errors="replace")
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        self.events_seen += 1
        try:
            loop.call_soon_threadsafe(self.buffer.put_nowait, str(path))
        except RuntimeError:
            # Loop closed between the check and the call during shutdown
            logger.debug(f"Event loop closed, dropping event {path}")
