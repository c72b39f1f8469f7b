"""
GPS Fix Schema
==============

Pydantic models for the GPS-fix batches written by the capture process.

A batch file holds a JSON array of fix records. Only the shape is
validated; values are taken as reported by the receiver.

Input Contract (one element of the array):
    {
        "dop": {"gdop": 1.9, "hdop": 1.2, "pdop": 1.6,
                "tdop": 1.1, "vdop": 1.0, "xdop": null, "ydop": null},
        "satellites": {"seen": 14, "used": 9},
        "fix": "3D",
        "systemtime": "2024-03-02T10:15:42.120Z",
        "timestamp": "2024-03-02T10:15:42Z"
    }

Example:
    from dashcam_telemetry.models.gps import parse_batch

    fixes = parse_batch(raw_bytes)
    print(fixes[0].dop.hdop)
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field, TypeAdapter, field_validator


# Receivers report this value when a DOP cannot be computed.
INVALID_DOP = 99.99

# Fix quality reported while the receiver has no fix.
NO_FIX = "None"


class Dop(BaseModel):
    """Dilution-of-precision values of one fix."""

    gdop: float = Field(default=0.0, description="Geometric DOP")
    hdop: float = Field(default=0.0, description="Horizontal DOP")
    pdop: float = Field(default=0.0, description="Positional DOP")
    tdop: float = Field(default=0.0, description="Time DOP")
    vdop: float = Field(default=0.0, description="Vertical DOP")
    xdop: Any = None
    ydop: Any = None

    @field_validator("gdop", "hdop", "pdop", "tdop", "vdop", mode="before")
    @classmethod
    def _null_as_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value


class Satellites(BaseModel):
    """Satellite counts of one fix."""

    seen: int = Field(default=0, description="Satellites in view")
    used: int = Field(default=0, description="Satellites used in the solution")

    @field_validator("seen", "used", mode="before")
    @classmethod
    def _null_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class GPSFix(BaseModel):
    """
    One GPS fix record.

    Attributes:
        dop: Dilution-of-precision values (absent on some receivers)
        satellites: Satellite counts (absent on some receivers)
        fix: Fix quality tag ("None", "2D", "3D", ...)
        systemtime: Device clock time when the fix was recorded
        timestamp: Receiver (GNSS) time of the fix
    """

    dop: Optional[Dop] = None
    satellites: Optional[Satellites] = None
    fix: Optional[str] = Field(default=NO_FIX, description="Fix quality tag")
    systemtime: Optional[datetime] = None
    timestamp: Optional[datetime] = None

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "dop": {"gdop": 1.9, "hdop": 1.2, "pdop": 1.6, "tdop": 1.1, "vdop": 1.0},
                "satellites": {"seen": 14, "used": 9},
                "fix": "3D",
                "systemtime": "2024-03-02T10:15:42.120Z",
                "timestamp": "2024-03-02T10:15:42Z",
            }
        }

    @field_validator("fix", mode="before")
    @classmethod
    def _null_fix_as_empty(cls, value: Any) -> Any:
        # A null tag is not the receiver's "None" marker; the fix is kept.
        return "" if value is None else value

    @property
    def has_fix(self) -> bool:
        return self.fix != NO_FIX

    @property
    def device_time(self) -> Optional[datetime]:
        """Timestamp used for bucketing, always timezone-aware (UTC if naive)."""
        ts = self.systemtime or self.timestamp
        if ts is None:
            return None
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts


_batch_adapter = TypeAdapter(List[GPSFix])


def parse_batch(raw: bytes) -> List[GPSFix]:
    """
    Parse a GPS batch payload.

    Raises:
        pydantic.ValidationError: If the payload is not a JSON array of fixes
    """
    return _batch_adapter.validate_json(raw)
