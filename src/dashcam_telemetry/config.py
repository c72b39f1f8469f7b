"""
Dashcam Telemetry Configuration
===============================

This module handles configuration loading for the telemetry service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    DASHCAM_IMAGES_PATH           -> watch.images_path
    DASHCAM_GPS_PATH              -> watch.gps_path
    DASHCAM_MAX_QUEUE_SIZE        -> watch.max_queue_size
    DASHCAM_WINDOW_SECONDS        -> frames.window_seconds
    DASHCAM_GPS_RETENTION_SECONDS -> gps.retention_seconds
    DASHCAM_GPS_EVICT_INTERVAL    -> gps.evict_interval_seconds
    DASHCAM_PORT                  -> server.port
    DASHCAM_LOG_LEVEL             -> logging.level
    PORT                          -> server.port

Example:
    from dashcam_telemetry.config import load_config

    settings = load_config()
    print(settings.watch.images_path)
    print(settings.frames.window_seconds)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from dashcam_telemetry.errors import ConfigurationError


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="dashcam-telemetry", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class WatchConfig(BaseModel):
    """Watched directories and event classification."""

    images_path: str = Field(
        default="/mnt/data/images",
        description="Directory where the capture process drops JPEG frames",
    )
    gps_path: Optional[str] = Field(
        default=None,
        description="Directory where GPS-fix batches are written",
    )
    frame_extensions: List[str] = Field(
        default_factory=lambda: [".jpg"],
        min_length=1,
        description="Suffixes routed as frames",
    )
    gps_extensions: List[str] = Field(
        default_factory=lambda: [".json"],
        min_length=1,
        description="Suffixes routed as GPS batches (with the marker)",
    )
    gps_marker: str = Field(
        default="gps",
        min_length=1,
        description="Path fragment identifying GPS batches",
    )
    max_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum size of the event buffer (drops oldest)",
    )


class FramesConfig(BaseModel):
    """Frame window configuration."""

    window_seconds: int = Field(
        default=5,
        ge=1,
        description="Length of the frame rate window in seconds",
    )
    debounce_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Minimum age of the last frame before it is replaced",
    )


class GPSConfig(BaseModel):
    """GPS aggregation configuration."""

    retention_seconds: float = Field(
        default=7200.0,
        gt=0,
        description="Age after which a bucket is evicted",
    )
    evict_interval_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Eviction cadence in seconds (0 = never evict automatically)",
    )
    legacy_vdop_from_tdop: bool = Field(
        default=False,
        description="Fold vdop from the tdop field, as older firmware tooling did",
    )
    load_existing: bool = Field(
        default=True,
        description="Fold GPS batches already present in gps_path at startup",
    )


class HostConfig(BaseModel):
    """Host sampler configuration."""

    interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay between two host samples",
    )
    cpu_sample_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay between the two CPU counter reads of one sample",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3333, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the telemetry service.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    frames: FramesConfig = Field(default_factory=FramesConfig)
    gps: GPSConfig = Field(default_factory=GPSConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration

    Raises:
        ConfigurationError: If the merged configuration is invalid
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/etc/dashcam/telemetry.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            try:
                config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    else:
        logger.warning("No config file found, using defaults and environment variables")

    try:
        _apply_env_overrides(config_data)
        settings = Settings.model_validate(config_data)
    except (ValidationError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    return settings


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Watch settings
    if env_images := os.environ.get("DASHCAM_IMAGES_PATH"):
        config_data.setdefault("watch", {})["images_path"] = env_images
    if env_gps := os.environ.get("DASHCAM_GPS_PATH"):
        config_data.setdefault("watch", {})["gps_path"] = env_gps
    if env_queue := os.environ.get("DASHCAM_MAX_QUEUE_SIZE"):
        config_data.setdefault("watch", {})["max_queue_size"] = int(env_queue)

    # Frame window
    if env_window := os.environ.get("DASHCAM_WINDOW_SECONDS"):
        config_data.setdefault("frames", {})["window_seconds"] = int(env_window)

    # GPS retention
    if env_retention := os.environ.get("DASHCAM_GPS_RETENTION_SECONDS"):
        config_data.setdefault("gps", {})["retention_seconds"] = float(env_retention)
    if env_evict := os.environ.get("DASHCAM_GPS_EVICT_INTERVAL"):
        config_data.setdefault("gps", {})["evict_interval_seconds"] = float(env_evict)

    # Server settings
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("DASHCAM_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("DASHCAM_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
