"""
Error Types
===========

Exception hierarchy for the telemetry engine.

    TelemetryError
    ├── TransientIngestError  - one event or batch could not be ingested
    ├── SamplerError          - the host stats source failed
    └── ConfigurationError    - invalid settings, raised at startup only

Transient errors are recovered where they occur (the offending item is
skipped). Sampler errors freeze the last host snapshot. Configuration
errors abort startup before any task is created.
"""


class TelemetryError(Exception):
    """Base class for telemetry engine errors."""


class TransientIngestError(TelemetryError):
    """A GPS batch failed to parse or a path could not be read."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class SamplerError(TelemetryError):
    """The host stats source raised while sampling."""


class ConfigurationError(TelemetryError):
    """Invalid window length, retention or other setting."""
