"""
facility_graph.py — Nearest-facility resolution.

Two strategies:

  sorted (default)  Distance from the query to every facility, ascending.
                    The first element is the globally nearest facility.

  mst (legacy)      Build the complete graph {query} ∪ facilities, run
                    Prim's algorithm from the query node, and pick the
                    facility attached directly to the query in the MST
                    with the smallest key. If no facility hangs directly
                    off the query node (e.g. every query edge is
                    non-finite), a linear scan for the true minimum
                    distance is used instead.

A minimum spanning tree minimises total tree weight, not any single
root edge, so the MST answer is only trusted where it agrees with a
direct scan. In practice Prim's first pick from node 0 is the closest
facility, so both strategies return the same facility; the MST mode is
kept for output compatibility with older clients.

Travel time is ceil(distance / 40 km/h × 60) minutes: 40 km/h is a fixed
average urban speed, not a routing estimate.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence
from urllib.parse import urlencode

from civicwatch.core.weights import AVERAGE_URBAN_SPEED_KMPH
from civicwatch.models.facility import Facility, FacilityMatch, GeoPoint, NearestStrategy
from civicwatch.services.geo_math import distance_km

INF = math.inf

DEFAULT_TOP_K = 3


def estimate_travel_time_minutes(
    distance: float, speed_kmph: float = AVERAGE_URBAN_SPEED_KMPH
) -> int:
    """Whole minutes (rounded up) to cover `distance` km at `speed_kmph`."""
    if speed_kmph <= 0 or not math.isfinite(distance):
        return 0
    # Rounding before ceil keeps 2 km → 3 min instead of 4 from float noise
    return math.ceil(round(distance * 60 / speed_kmph, 9))


def _match(facility: Facility, distance: float) -> FacilityMatch:
    return FacilityMatch(
        facility=facility,
        distance_km=distance,
        estimated_time_min=estimate_travel_time_minutes(distance),
    )


def _query_distance(query: GeoPoint, facility: Facility) -> float:
    return distance_km(query.latitude, query.longitude, facility.latitude, facility.longitude)


# ── Graph + Prim's MST ────────────────────────────────────────────────────────

def build_graph(query: GeoPoint, facilities: Sequence[Facility]) -> list[list[float]]:
    """
    Dense symmetric adjacency matrix.

    Node 0 is the query point, node i (1..N) is facilities[i - 1]. Every
    query-facility and facility-facility edge is present; the diagonal is INF.
    """
    n = len(facilities) + 1
    graph = [[INF] * n for _ in range(n)]

    for i, facility in enumerate(facilities):
        d = _query_distance(query, facility)
        graph[0][i + 1] = d
        graph[i + 1][0] = d

        for j in range(i + 1, len(facilities)):
            other = facilities[j]
            d = distance_km(facility.latitude, facility.longitude, other.latitude, other.longitude)
            graph[i + 1][j + 1] = d
            graph[j + 1][i + 1] = d

    return graph


def find_mst(graph: list[list[float]]) -> tuple[list[int], list[float]]:
    """
    Prim's algorithm from node 0 over a dense adjacency matrix.

    Returns (parent, key): parent[v] is v's MST parent (-1 for the root or
    for nodes that could not be reached), key[v] the weight of that edge.
    """
    n = len(graph)
    visited = [False] * n
    parent = [-1] * n
    key = [INF] * n
    if n == 0:
        return parent, key
    key[0] = 0.0

    for _ in range(n - 1):
        min_key = INF
        u = -1
        for v in range(n):
            if not visited[v] and key[v] < min_key:
                min_key = key[v]
                u = v
        if u == -1:
            break  # remaining nodes unreachable
        visited[u] = True

        for v in range(n):
            w = graph[u][v]
            if w != INF and not visited[v] and w < key[v]:
                parent[v] = u
                key[v] = w

    return parent, key


def mst_nearest_index(parent: list[int], key: list[float]) -> Optional[int]:
    """
    Facility index (0-based) directly attached to the query node with the
    smallest MST key, or None when no facility has the query as its parent.
    """
    nearest: Optional[int] = None
    min_distance = INF
    for node in range(1, len(key)):
        if parent[node] == 0 and key[node] < min_distance:
            min_distance = key[node]
            nearest = node - 1
    return nearest


def _linear_scan(query: GeoPoint, facilities: Sequence[Facility]) -> tuple[int, float]:
    best_index = 0
    best_distance = _query_distance(query, facilities[0])
    for i in range(1, len(facilities)):
        d = _query_distance(query, facilities[i])
        if d < best_distance:
            best_distance = d
            best_index = i
    return best_index, best_distance


# ── Public entry points ───────────────────────────────────────────────────────

def find_top_k_facilities(
    query: GeoPoint, facilities: Sequence[Facility], k: int = DEFAULT_TOP_K
) -> list[FacilityMatch]:
    """The `k` closest facilities, ascending by distance. Stable for ties."""
    if not facilities or k <= 0:
        return []
    ranked = sorted(
        (_match(f, _query_distance(query, f)) for f in facilities),
        key=lambda m: m.distance_km,
    )
    return ranked[:k]


def find_nearest_facility(
    query: GeoPoint,
    facilities: Sequence[Facility],
    strategy: NearestStrategy = "sorted",
) -> Optional[FacilityMatch]:
    """
    The nearest facility to `query`, or None for an empty list.

    strategy="sorted" takes the head of find_top_k_facilities();
    strategy="mst" resolves through Prim's MST with the linear-scan fallback.
    """
    if not facilities:
        return None

    if strategy == "sorted":
        return find_top_k_facilities(query, facilities, k=1)[0]

    graph = build_graph(query, facilities)
    parent, key = find_mst(graph)
    index = mst_nearest_index(parent, key)
    if index is None:
        index, distance = _linear_scan(query, facilities)
    else:
        distance = key[index + 1]
    return _match(facilities[index], distance)


def directions_url(facility: Facility, origin: GeoPoint) -> str:
    """Google Maps driving directions from `origin` to the facility."""
    params = {
        "api": "1",
        "origin": f"{origin.latitude},{origin.longitude}",
        "destination": f"{facility.latitude},{facility.longitude}",
        "travelmode": "driving",
    }
    return "https://www.google.com/maps/dir/?" + urlencode(params, safe=",")
