"""
dashcam-telemetry
=================

Live telemetry for a camera device.

This package watches the directories where a capture process writes JPEG
frames and GPS-fix batches, and turns file-creation events into
queryable frame rate, frame size, GPS quality and host CPU/memory
statistics.

Components:
    - stream: Event buffer and filesystem watcher
    - ingest: Event classification and routing
    - aggregation: Frame window tracker and GPS aggregate table
    - host: Host CPU/memory sampler
    - engine: TelemetryEngine context object owning all of the above

Example:
    from dashcam_telemetry.config import load_config
    from dashcam_telemetry.main import create_app

    app = create_app(load_config())
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
