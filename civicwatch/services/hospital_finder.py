"""
hospital_finder.py — Live nearest-hospital lookup.

Flow for one lookup:

  1. cache hit?  → use the cached facility list
  2. otherwise   → FacilityProvider.search() under asyncio.wait_for(timeout)
  3. provider failed / timed out → status="provider_unavailable"
  4. zero facilities             → status="no_facilities" + "increase radius" hint
  5. otherwise   → nearest (FacilityGraph) + top-N alternatives + directions URL

The finder never raises for provider trouble; "the provider is down" and
"there are no hospitals here" stay distinguishable through `status`.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from civicwatch.core.errors import (
    CollaboratorError,
    CollaboratorTimeoutError,
    CollaboratorUnavailableError,
    NoFacilitiesFoundError,
)
from civicwatch.models.facility import (
    Facility,
    GeoPoint,
    HospitalSearchResult,
    NearestStrategy,
)
from civicwatch.services.facility_cache import FacilityCache
from civicwatch.services.facility_graph import (
    directions_url,
    find_nearest_facility,
    find_top_k_facilities,
)

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 10.0
DEFAULT_ALTERNATIVES = 5


class FacilityProvider(Protocol):
    async def search(self, lat: float, lon: float, radius_km: float) -> list[Facility]: ...


class HospitalFinder:
    def __init__(
        self,
        provider: FacilityProvider,
        cache: Optional[FacilityCache] = None,
        strategy: NearestStrategy = "sorted",
        alternatives: int = DEFAULT_ALTERNATIVES,
        timeout_seconds: float = 25.0,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.strategy = strategy
        self.alternatives = alternatives
        self.timeout_seconds = timeout_seconds

    async def _fetch(self, lat: float, lon: float, radius_km: float) -> list[Facility]:
        try:
            return await asyncio.wait_for(
                self.provider.search(lat, lon, radius_km), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            raise CollaboratorTimeoutError(
                "facility provider", f"no answer within {self.timeout_seconds:g}s"
            ) from exc
        except CollaboratorError:
            raise
        except Exception as exc:
            raise CollaboratorUnavailableError("facility provider", str(exc)) from exc

    async def find_nearby_hospitals(
        self,
        lat: float,
        lon: float,
        severity: Optional[str] = None,
        radius_km: float = DEFAULT_RADIUS_KM,
    ) -> HospitalSearchResult:
        origin = GeoPoint(latitude=lat, longitude=lon)
        base = {
            "user_location": origin,
            "severity": severity,
            "radius_km": radius_km,
            "strategy": self.strategy,
            "timestamp": datetime.now(timezone.utc),
        }

        cached = False
        facilities: Optional[list[Facility]] = None
        if self.cache is not None:
            facilities = await self.cache.get(lat, lon, radius_km)
            cached = facilities is not None

        if facilities is None:
            try:
                facilities = await self._fetch(lat, lon, radius_km)
            except CollaboratorError as exc:
                logger.warning("Hospital lookup degraded: %s", exc)
                return HospitalSearchResult(
                    status="provider_unavailable",
                    message="Hospital search is temporarily unavailable. Please try again.",
                    **base,
                )
            if self.cache is not None:
                await self.cache.set(lat, lon, radius_km, facilities)

        if not facilities:
            not_found = NoFacilitiesFoundError(lat, lon, radius_km)
            logger.info("%s (%.4f, %.4f)", not_found, lat, lon)
            return HospitalSearchResult(
                status="no_facilities", message=str(not_found), cached=cached, **base
            )

        nearest = find_nearest_facility(origin, facilities, strategy=self.strategy)
        alternatives = find_top_k_facilities(origin, facilities, k=self.alternatives)
        logger.info(
            "Nearest hospital: %s (%.2f km, ~%d min)",
            nearest.facility.name, nearest.distance_km, nearest.estimated_time_min,
        )
        return HospitalSearchResult(
            status="ok",
            nearest=nearest,
            alternatives=alternatives,
            directions_url=directions_url(nearest.facility, origin),
            cached=cached,
            **base,
        )
