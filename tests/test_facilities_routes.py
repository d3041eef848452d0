"""
test_facilities_routes.py — Tests for the /api/v1/facilities endpoints.

The live hospital route gets a HospitalFinder with a fake provider via
dependency_overrides, so Overpass is never contacted.
"""

import math

import pytest

from civicwatch.core.errors import CollaboratorTimeoutError
from civicwatch.models.facility import Facility
from civicwatch.routes.facilities import get_hospital_finder
from civicwatch.services.geo_math import EARTH_RADIUS_KM
from civicwatch.services.hospital_finder import HospitalFinder

QUERY = {"latitude": 12.9716, "longitude": 77.5946}


def facility_json(km, name):
    return {
        "id": name,
        "name": name,
        "latitude": QUERY["latitude"] + math.degrees(km / EARTH_RADIUS_KM),
        "longitude": QUERY["longitude"],
    }


FACILITIES = [facility_json(10, "far"), facility_json(2, "near"), facility_json(5, "mid")]


class FakeProvider:
    def __init__(self, facilities=None, error=None):
        self.facilities = facilities or []
        self.error = error

    async def search(self, lat, lon, radius_km):
        if self.error:
            raise self.error
        return self.facilities


def override_finder(provider):
    from civicwatch.main import app

    app.dependency_overrides[get_hospital_finder] = lambda: HospitalFinder(provider)


# ── POST /nearest ─────────────────────────────────────────────────────────────

class TestNearest:
    @pytest.mark.parametrize("strategy", ["sorted", "mst"])
    async def test_nearest(self, client, strategy):
        r = await client.post(
            "/api/v1/facilities/nearest",
            json={"query": QUERY, "facilities": FACILITIES, "strategy": strategy},
        )
        assert r.status_code == 200
        data = r.json()
        assert data["facility"]["name"] == "near"
        assert data["distanceKm"] == pytest.approx(2.0)
        assert data["estimatedTimeMin"] == 3

    async def test_empty_list_is_null(self, client):
        r = await client.post("/api/v1/facilities/nearest", json={"query": QUERY, "facilities": []})
        assert r.status_code == 200
        assert r.json() is None

    async def test_bad_query_422(self, client):
        r = await client.post(
            "/api/v1/facilities/nearest",
            json={"query": {"latitude": 95, "longitude": 0}, "facilities": FACILITIES},
        )
        assert r.status_code == 422


# ── POST /top ─────────────────────────────────────────────────────────────────

class TestTop:
    async def test_top_two(self, client):
        r = await client.post(
            "/api/v1/facilities/top", json={"query": QUERY, "facilities": FACILITIES, "k": 2}
        )
        data = r.json()
        assert [m["facility"]["name"] for m in data] == ["near", "mid"]
        assert [m["estimatedTimeMin"] for m in data] == [3, 8]

    async def test_k_must_be_positive(self, client):
        r = await client.post(
            "/api/v1/facilities/top", json={"query": QUERY, "facilities": FACILITIES, "k": 0}
        )
        assert r.status_code == 422


# ── GET /hospitals ────────────────────────────────────────────────────────────

class TestHospitals:
    async def test_ok(self, client):
        override_finder(FakeProvider([Facility(**f) for f in FACILITIES]))
        r = await client.get("/api/v1/facilities/hospitals?lat=12.9716&lon=77.5946&severity=high")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["nearest"]["facility"]["name"] == "near"
        assert len(data["alternatives"]) == 3
        assert data["userLocation"] == QUERY
        assert data["severity"] == "high"
        assert "directionsUrl" in data

    async def test_no_facilities(self, client):
        override_finder(FakeProvider([]))
        data = (await client.get("/api/v1/facilities/hospitals?lat=0&lon=0&radius_km=3")).json()
        assert data["status"] == "no_facilities"
        assert data["message"] == "No hospitals found within 3 km. Try increasing the search radius."

    async def test_provider_down(self, client):
        override_finder(FakeProvider(error=CollaboratorTimeoutError("overpass")))
        data = (await client.get("/api/v1/facilities/hospitals?lat=0&lon=0")).json()
        assert data["status"] == "provider_unavailable"
        assert data["nearest"] is None

    @pytest.mark.parametrize("query", ["lat=91&lon=0", "lat=0&lon=181", "lat=0&lon=0&radius_km=0", "lon=0"])
    async def test_invalid_query_422(self, client, query):
        override_finder(FakeProvider([]))
        r = await client.get(f"/api/v1/facilities/hospitals?{query}")
        assert r.status_code == 422
