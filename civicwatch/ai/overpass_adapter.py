"""
OverpassAdapter — Live hospital lookup via the Overpass API (OpenStreetMap).

Implements the FacilityProvider interface:

    hospitals = await overpass_adapter.search(lat, lon, radius_km)

Queries nodes, ways and relations tagged amenity=hospital within the
radius and normalises them into Facility models. Ways and relations are
positioned at their `center`.

Zero results is a normal answer ([]). Transport failures are raised as
CollaboratorTimeoutError / CollaboratorUnavailableError so the hospital
finder can report "provider unavailable" instead of "no hospitals".
"""

import logging
from typing import Any, Optional

import httpx

from civicwatch.core.config import settings
from civicwatch.core.errors import CollaboratorTimeoutError, CollaboratorUnavailableError
from civicwatch.models.facility import Facility

logger = logging.getLogger(__name__)

_COLLABORATOR = "overpass"

_QUERY_TEMPLATE = """
[out:json][timeout:25];
(
  node["amenity"="hospital"](around:{radius_m},{lat},{lon});
  way["amenity"="hospital"](around:{radius_m},{lat},{lon});
  relation["amenity"="hospital"](around:{radius_m},{lat},{lon});
);
out center;
"""


def build_query(lat: float, lon: float, radius_km: float) -> str:
    return _QUERY_TEMPLATE.format(radius_m=int(round(radius_km * 1000)), lat=lat, lon=lon)


def _format_address(tags: dict[str, Any]) -> str:
    full = tags.get("addr:full")
    if full:
        return full
    parts = [
        tags.get("addr:housenumber"),
        tags.get("addr:street"),
        tags.get("addr:city"),
        tags.get("addr:state"),
        tags.get("addr:postcode"),
    ]
    return ", ".join(p for p in parts if p) or "Address not available"


def _parse_beds(raw: Any) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def parse_element(element: dict[str, Any]) -> Optional[Facility]:
    """Convert one Overpass element into a Facility, or None if it has no position."""
    if element.get("type") == "node" and "lat" in element and "lon" in element:
        lat, lon = element["lat"], element["lon"]
    elif element.get("center"):
        lat, lon = element["center"].get("lat"), element["center"].get("lon")
    else:
        lat, lon = element.get("lat"), element.get("lon")
    if lat is None or lon is None:
        return None

    tags = element.get("tags") or {}
    osm_type = element.get("type", "node")
    osm_id = element.get("id")

    return Facility(
        id=f"OSM_{osm_type}_{osm_id}",
        name=tags.get("name") or tags.get("name:en") or tags.get("official_name") or "Unnamed Hospital",
        latitude=float(lat),
        longitude=float(lon),
        address=_format_address(tags),
        phone=tags.get("phone") or tags.get("contact:phone") or tags.get("phone:mobile"),
        email=tags.get("email") or tags.get("contact:email"),
        website=tags.get("website") or tags.get("contact:website"),
        type=tags.get("healthcare") or tags.get("healthcare:speciality") or "Hospital",
        emergency=tags.get("emergency") == "yes" or tags.get("emergency:room") == "yes",
        beds=_parse_beds(tags.get("beds")),
        operator=tags.get("operator"),
        source="OpenStreetMap",
        osm_type=osm_type,
        osm_id=osm_id,
    )


class OverpassAdapter:
    """Thin async wrapper around the Overpass interpreter endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or settings.overpass_url
        self.timeout = settings.facility_timeout_seconds if timeout is None else timeout
        self._transport = transport

    async def search(self, lat: float, lon: float, radius_km: float) -> list[Facility]:
        """
        Hospitals within `radius_km` of (lat, lon).

        Returns [] when the area has no tagged hospitals.

        Raises:
            CollaboratorTimeoutError:     request exceeded the timeout.
            CollaboratorUnavailableError: HTTP error status or unreadable payload.
        """
        query = build_query(lat, lon, radius_km)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.base_url, data={"data": query})
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException as exc:
                logger.error("Overpass request timed out after %.1fs", self.timeout)
                raise CollaboratorTimeoutError(_COLLABORATOR, str(exc)) from exc
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "Overpass API error: %s — %s",
                    exc.response.status_code,
                    exc.response.text[:200],
                )
                raise CollaboratorUnavailableError(
                    _COLLABORATOR, f"HTTP {exc.response.status_code}"
                ) from exc
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("Overpass request failed: %s", exc)
                raise CollaboratorUnavailableError(_COLLABORATOR, str(exc)) from exc

        elements = data.get("elements") or []
        facilities = [f for f in (parse_element(e) for e in elements) if f is not None]
        if not facilities:
            logger.warning("No hospitals found in Overpass data near (%.4f, %.4f)", lat, lon)
        else:
            logger.info("Parsed %d hospitals from OpenStreetMap", len(facilities))
        return facilities


# Module-level singleton
overpass_adapter = OverpassAdapter()
