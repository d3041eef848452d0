"""
facility.py — Pydantic models for nearest-facility resolution.

Facility              — a hospital (or other POI) supplied per query by a provider
GeoPoint              — a query position
FacilityMatch         — facility + distance + estimated drive time
HospitalSearchResult  — live lookup outcome (nearest + alternatives, or typed empty)
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from civicwatch.models.base import CamelModel

NearestStrategy = Literal["sorted", "mst"]
SearchStatus = Literal["ok", "no_facilities", "provider_unavailable"]


class GeoPoint(CamelModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Facility(CamelModel):
    """A candidate facility. Read-only; never persisted by this service."""

    id: str
    name: str
    latitude: float
    longitude: float

    # ── Optional contact metadata (OpenStreetMap tags) ────────────────────────
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    type: str = "Hospital"
    emergency: bool = False
    beds: Optional[int] = None
    operator: Optional[str] = None
    source: Optional[str] = None
    osm_type: Optional[str] = None   # node | way | relation
    osm_id: Optional[int] = None


class FacilityMatch(CamelModel):
    facility: Facility
    distance_km: float
    estimated_time_min: int


class HospitalSearchResult(CamelModel):
    """Response shape for GET /api/v1/facilities/hospitals."""

    status: SearchStatus
    nearest: Optional[FacilityMatch] = None
    alternatives: list[FacilityMatch] = Field(default_factory=list)
    user_location: GeoPoint
    severity: Optional[str] = None
    radius_km: float
    strategy: NearestStrategy = "sorted"
    message: Optional[str] = None
    directions_url: Optional[str] = None
    cached: bool = False
    timestamp: datetime


class NearestFacilityRequest(CamelModel):
    """Request body for POST /api/v1/facilities/nearest."""

    query: GeoPoint
    facilities: list[Facility] = Field(default_factory=list)
    strategy: NearestStrategy = "sorted"


class TopFacilitiesRequest(CamelModel):
    """Request body for POST /api/v1/facilities/top."""

    query: GeoPoint
    facilities: list[Facility] = Field(default_factory=list)
    k: int = Field(default=3, ge=1, le=50)
