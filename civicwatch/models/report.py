"""
report.py — Pydantic schemas for citizen incident reports.

Report    — a single citizen submission (read-only to the analysis core)
Location  — where it was captured; isReal=false marks a simulated position

Reports are created by the capture flow and only re-read here, so the
models are frozen: an analysis run works on an immutable snapshot.
"""

import math
from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, Field

from civicwatch.models.base import CamelModel

ReportType = Literal["police", "medical", "infrastructure"]
ReportStatus = Literal["pending", "in-progress", "resolved"]
SeverityLevel = Literal["low", "medium", "high"]

REPORT_TYPES: tuple[str, ...] = ("police", "medical", "infrastructure")


class Location(CamelModel):
    model_config = ConfigDict(frozen=True)

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    # False when the device fell back to a simulated position
    is_real: bool = True

    @property
    def has_finite_coordinates(self) -> bool:
        return (
            self.latitude is not None
            and self.longitude is not None
            and math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
        )


class Report(CamelModel):
    """A citizen incident report."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    type: ReportType
    location: Location
    status: ReportStatus = "pending"
    severity: Optional[SeverityLevel] = None   # absent → scored as "medium"
    created_at: datetime
