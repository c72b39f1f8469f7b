"""
Dashcam Telemetry Main Application
==================================

FastAPI entry point for the camera telemetry service.

The HTTP layer is thin: every endpoint serializes a snapshot returned by
the TelemetryEngine and never touches live aggregate state.

Endpoints:
    GET  /                     - Service information
    GET  /health               - Liveness probe
    GET  /top                  - Host CPU/memory + frame statistics
    GET  /gps                  - Per-minute GPS quality averages
    GET  /lastframe            - Last observed frame (debounced)
    GET  /framejpg/{filename}  - Raw JPEG from the images directory
    GET  /metrics              - Engine counters
"""

import argparse
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import FileResponse, JSONResponse

from dashcam_telemetry.config import Settings, load_config, setup_logging
from dashcam_telemetry.engine import TelemetryEngine
from dashcam_telemetry.host.stats import HostStatsSource


logger = logging.getLogger(__name__)


def _engine(request: Request) -> TelemetryEngine:
    return request.app.state.engine


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    stats_source: Optional[HostStatsSource] = None,
    watch: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration (loaded from file/environment if None)
        stats_source: Host stats backend (psutil if None)
        watch: Start the filesystem watcher on startup

    Raises:
        ConfigurationError: If settings are invalid
    """
    if settings is None:
        settings = load_config()

    engine = TelemetryEngine(settings, stats_source=stats_source)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with graceful shutdown."""
        logger.info(f"Starting {settings.service.name} {settings.service.version}")
        await engine.start(watch=watch)

        yield

        logger.info("Shutting down gracefully...")
        await engine.stop()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="dashcam-telemetry",
        description="Live frame, GPS and host telemetry of a camera device",
        version=settings.service.version,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.settings = settings

    _register_routes(app)
    return app


# =============================================================================
# HTTP Endpoints
# =============================================================================

def _register_routes(app: FastAPI) -> None:

    @app.get("/")
    async def root(request: Request) -> JSONResponse:
        """Service information endpoint."""
        settings: Settings = request.app.state.settings
        return JSONResponse({
            "service": settings.service.name,
            "version": settings.service.version,
            "images_path": settings.watch.images_path,
            "gps_path": settings.watch.gps_path,
            "status": "running",
        })

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Liveness probe - always 200 while the process is serving."""
        engine = _engine(request)
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(engine.uptime_seconds, 1),
            "host_sampler_failed": engine.sampler.failed,
        })

    @app.get("/top")
    async def top(request: Request) -> JSONResponse:
        """Latest host snapshot; 503 until the first sample completes."""
        snapshot = _engine(request).top()
        if snapshot is None:
            return JSONResponse(
                {"error": "No host snapshot available yet"},
                status_code=503,
            )
        return JSONResponse(snapshot.to_dict())

    @app.get("/gps")
    async def gps(request: Request) -> JSONResponse:
        """GPS averages per metric, sorted by time."""
        return JSONResponse(_engine(request).gps())

    @app.get("/lastframe")
    async def last_frame(request: Request) -> Response:
        """Last observed frame; 204 before any frame arrives."""
        frame = _engine(request).last_frame()
        if frame is None:
            return Response(status_code=204)
        return JSONResponse(frame.to_dict())

    @app.get("/framejpg/{filename}")
    async def frame_jpg(filename: str, request: Request) -> FileResponse:
        """Serve one frame from the images directory."""
        settings: Settings = request.app.state.settings
        name = os.path.basename(filename)
        path = Path(settings.watch.images_path) / name
        if not name or not path.is_file():
            raise HTTPException(status_code=404, detail=f"Frame not found: {name}")
        return FileResponse(path, media_type="image/jpeg")

    @app.get("/metrics")
    async def metrics(request: Request) -> JSONResponse:
        """Detailed engine counters for observability."""
        return JSONResponse(_engine(request).metrics())


# =============================================================================
# Main Entry Point
# =============================================================================

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Watch camera output directories and serve live telemetry",
    )
    parser.add_argument("images_path", nargs="?", help="Directory receiving JPEG frames")
    parser.add_argument("gps_path", nargs="?", help="Directory receiving GPS batches")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--host", default=None, help="Bind host")
    parser.add_argument("--port", type=int, default=None, help="Bind port")
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> None:
    """Command-line entry point."""
    import uvicorn

    args = _parse_args(argv)
    settings = load_config(args.config)

    updates = {}
    if args.images_path:
        updates["images_path"] = args.images_path
    if args.gps_path:
        updates["gps_path"] = args.gps_path
    if updates:
        settings.watch = settings.watch.model_copy(update=updates)
    if args.host:
        settings.server = settings.server.model_copy(update={"host": args.host})
    if args.port:
        settings.server = settings.server.model_copy(update={"port": args.port})

    setup_logging(settings)
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
