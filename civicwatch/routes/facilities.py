"""
facilities.py — Nearest-facility endpoints.

Routes:
  POST /api/v1/facilities/nearest    — nearest of the supplied facilities (or null)
  POST /api/v1/facilities/top        — k closest of the supplied facilities
  GET  /api/v1/facilities/hospitals  — live OpenStreetMap lookup (cached)

The POST routes are pure computations over the request body. The GET
route calls the Overpass API through HospitalFinder and answers with a
typed status: "ok", "no_facilities" or "provider_unavailable".

TESTING
───────
  pytest tests/test_facilities_routes.py -v

  curl "http://localhost:8000/api/v1/facilities/hospitals?lat=51.5074&lon=-0.1278&severity=high"
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from civicwatch.ai.overpass_adapter import overpass_adapter
from civicwatch.core.config import settings
from civicwatch.models.facility import (
    FacilityMatch,
    HospitalSearchResult,
    NearestFacilityRequest,
    TopFacilitiesRequest,
)
from civicwatch.services.facility_cache import FacilityCache
from civicwatch.services.facility_graph import find_nearest_facility, find_top_k_facilities
from civicwatch.services.hospital_finder import HospitalFinder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/facilities", tags=["facilities"])

_hospital_finder = HospitalFinder(
    provider=overpass_adapter,
    cache=FacilityCache(
        ttl_seconds=settings.facility_cache_ttl_seconds,
        max_size=settings.facility_cache_max_size,
    ),
    strategy=settings.facility_strategy,
    alternatives=settings.facility_alternatives,
    timeout_seconds=settings.facility_timeout_seconds,
)


def get_hospital_finder() -> HospitalFinder:
    return _hospital_finder


@router.post("/nearest", response_model=Optional[FacilityMatch])
async def nearest_facility(payload: NearestFacilityRequest):
    """Nearest facility to the query point; null when the list is empty."""
    return find_nearest_facility(payload.query, payload.facilities, strategy=payload.strategy)


@router.post("/top", response_model=list[FacilityMatch])
async def top_facilities(payload: TopFacilitiesRequest):
    """The k closest facilities, ascending by distance."""
    return find_top_k_facilities(payload.query, payload.facilities, k=payload.k)


@router.get("/hospitals", response_model=HospitalSearchResult)
async def nearby_hospitals(
    lat:       float = Query(..., ge=-90, le=90),
    lon:       float = Query(..., ge=-180, le=180),
    radius_km: float = Query(default=settings.facility_search_radius_km, gt=0, le=100),
    severity:  Optional[str] = Query(default=None),
    finder: HospitalFinder = Depends(get_hospital_finder),
):
    """Nearest hospital plus alternatives around (lat, lon)."""
    return await finder.find_nearby_hospitals(lat, lon, severity=severity, radius_km=radius_km)
