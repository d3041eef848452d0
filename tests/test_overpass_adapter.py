"""
test_overpass_adapter.py — Overpass element parsing and HTTP error translation.

HTTP is served by httpx.MockTransport, so no request leaves the process.
"""

import httpx
import pytest

from civicwatch.ai.overpass_adapter import OverpassAdapter, build_query, parse_element
from civicwatch.core.errors import CollaboratorTimeoutError, CollaboratorUnavailableError

NODE = {
    "type": "node",
    "id": 101,
    "lat": 51.5170,
    "lon": -0.1740,
    "tags": {
        "amenity": "hospital",
        "name": "St Mary's Hospital",
        "addr:housenumber": "1",
        "addr:street": "Praed Street",
        "addr:city": "London",
        "phone": "+44 20 3312 6666",
        "emergency": "yes",
        "beds": "541",
    },
}

WAY = {
    "type": "way",
    "id": 202,
    "center": {"lat": 51.4980, "lon": -0.1180},
    "tags": {"amenity": "hospital", "name:en": "St Thomas' Hospital", "beds": "many"},
}

NO_POSITION = {"type": "relation", "id": 303, "tags": {"name": "Ghost"}}


def adapter_with(handler) -> OverpassAdapter:
    return OverpassAdapter(
        base_url="https://overpass.test/api/interpreter",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


# ── Parsing ───────────────────────────────────────────────────────────────────

class TestParseElement:
    def test_node(self):
        facility = parse_element(NODE)
        assert facility.id == "OSM_node_101"
        assert facility.name == "St Mary's Hospital"
        assert (facility.latitude, facility.longitude) == (51.5170, -0.1740)
        assert facility.address == "1, Praed Street, London"
        assert facility.emergency is True
        assert facility.beds == 541
        assert facility.source == "OpenStreetMap"

    def test_way_uses_center(self):
        facility = parse_element(WAY)
        assert facility.latitude == 51.4980
        assert facility.name == "St Thomas' Hospital"
        assert facility.address == "Address not available"
        assert facility.beds is None
        assert facility.emergency is False

    def test_without_position_is_skipped(self):
        assert parse_element(NO_POSITION) is None

    def test_unnamed(self):
        assert parse_element({"type": "node", "id": 1, "lat": 0, "lon": 0}).name == "Unnamed Hospital"


class TestBuildQuery:
    def test_radius_in_metres_and_all_element_kinds(self):
        query = build_query(51.5, -0.12, 10)
        assert "around:10000,51.5,-0.12" in query
        for kind in ("node", "way", "relation"):
            assert f'{kind}["amenity"="hospital"]' in query
        assert "out center;" in query


# ── HTTP ──────────────────────────────────────────────────────────────────────

class TestSearch:
    async def test_parses_elements(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"elements": [NODE, WAY, NO_POSITION]})

        facilities = await adapter_with(handler).search(51.5, -0.12, 5)
        assert [f.id for f in facilities] == ["OSM_node_101", "OSM_way_202"]
        assert "amenity" in seen["body"]

    async def test_no_elements_is_empty_list(self):
        facilities = await adapter_with(lambda r: httpx.Response(200, json={"elements": []})).search(0, 0, 1)
        assert facilities == []

    async def test_http_error_is_unavailable(self):
        adapter = adapter_with(lambda r: httpx.Response(504, text="Gateway Timeout"))
        with pytest.raises(CollaboratorUnavailableError) as exc_info:
            await adapter.search(51.5, -0.12, 5)
        assert "504" in str(exc_info.value)

    async def test_invalid_json_is_unavailable(self):
        adapter = adapter_with(lambda r: httpx.Response(200, text="<html>busy</html>"))
        with pytest.raises(CollaboratorUnavailableError):
            await adapter.search(51.5, -0.12, 5)

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(CollaboratorTimeoutError):
            await adapter_with(handler).search(51.5, -0.12, 5)

    async def test_connection_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CollaboratorUnavailableError):
            await adapter_with(handler).search(51.5, -0.12, 5)
