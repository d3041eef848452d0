"""
hotspots.py — Location analysis on top of a clustering result.

  calculate_geo_statistics()  center, spread, approximate radius, bounding box
  identify_hotspots()         one hotspot per cluster, largest first
  rank_priority_areas()       clusters ranked for resource allocation, each
                              with a recommended dispatch action
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Optional

from civicwatch.models.analysis import (
    BoundingBox,
    Centroid,
    Cluster,
    ClusteringResult,
    GeoStatistics,
    Hotspot,
    PriorityArea,
    Spread,
)
from civicwatch.models.report import Report

# Rough km per degree, used only for the radius estimate
_KM_PER_DEGREE = 111.0

# Hotspot level by report count: > high → "high", > medium → "medium"
_HOTSPOT_HIGH_COUNT = 10
_HOTSPOT_MEDIUM_COUNT = 5

# Priority = severity share × 0.7 + size share × 0.3
_PRIORITY_SEVERITY_WEIGHT = 0.7
_PRIORITY_SIZE_WEIGHT = 0.3


def calculate_geo_statistics(reports: list[Report]) -> Optional[GeoStatistics]:
    """Summary geometry of the reports that have usable coordinates."""
    located = [
        r for r in reports
        if r.location.is_real and r.location.has_finite_coordinates
    ]
    if not located:
        return None

    lats = [r.location.latitude for r in located]
    lons = [r.location.longitude for r in located]
    n = len(located)

    center_lat = sum(lats) / n
    center_lon = sum(lons) / n
    lat_spread = math.sqrt(sum((v - center_lat) ** 2 for v in lats) / n)
    lon_spread = math.sqrt(sum((v - center_lon) ** 2 for v in lons) / n)
    radius_km = math.sqrt((lat_spread * _KM_PER_DEGREE) ** 2 + (lon_spread * _KM_PER_DEGREE) ** 2)

    return GeoStatistics(
        center=Centroid(latitude=center_lat, longitude=center_lon),
        spread=Spread(latitude=lat_spread, longitude=lon_spread),
        radius_km=round(radius_km, 2),
        bounding_box=BoundingBox(north=max(lats), south=min(lats), east=max(lons), west=min(lons)),
    )


def hotspot_level(report_count: int) -> str:
    if report_count > _HOTSPOT_HIGH_COUNT:
        return "high"
    if report_count > _HOTSPOT_MEDIUM_COUNT:
        return "medium"
    return "low"


def identify_hotspots(clustering: ClusteringResult) -> list[Hotspot]:
    hotspots = [
        Hotspot(
            id=cluster.id,
            center=cluster.centroid,
            report_count=cluster.size,
            types=dict(cluster.type_histogram),
            severity=hotspot_level(cluster.size),
            cluster_severity=round(cluster.severity, 2),
        )
        for cluster in clustering.clusters
    ]
    return sorted(hotspots, key=lambda h: h.report_count, reverse=True)


def dominant_type(cluster: Cluster) -> str:
    if not cluster.type_histogram:
        return "unknown"
    return Counter(cluster.type_histogram).most_common(1)[0][0]


def recommend_action(cluster: Cluster, level: str) -> str:
    """Recommended resource allocation for one cluster."""
    kind = dominant_type(cluster)
    where = f"({cluster.centroid.latitude:.4f}, {cluster.centroid.longitude:.4f})"
    count = cluster.type_histogram.get(kind, 0)

    if kind == "medical":
        if level == "high":
            return f"DISPATCH: Station an ambulance unit near {where} — {count} medical reports"
        return f"ALERT: Notify the nearest hospital of recurring medical incidents near {where}"

    if kind == "police":
        if level == "high":
            return f"PATROL: Add dedicated patrol coverage around {where} — {count} police reports"
        return f"MONITOR: Include {where} in routine patrol routes"

    if kind == "infrastructure":
        if level == "high":
            return f"REPAIR: Send a maintenance crew to {where} — {count} infrastructure reports"
        return f"SCHEDULE: Add {where} to the next infrastructure inspection round"

    return f"REVIEW: Triage the incident cluster near {where}"


def rank_priority_areas(clusters: list[Cluster], limit: int = 5) -> list[PriorityArea]:
    """Clusters ranked by blended severity and size, highest priority first."""
    if not clusters:
        return []
    max_size = max(c.size for c in clusters) or 1
    max_severity = max(c.severity for c in clusters)
    if max_severity <= 0:
        max_severity = 1.0

    def score(cluster: Cluster) -> float:
        severity_share = max(cluster.severity, 0.0) / max_severity
        size_share = cluster.size / max_size
        return severity_share * _PRIORITY_SEVERITY_WEIGHT + size_share * _PRIORITY_SIZE_WEIGHT

    ranked = sorted(clusters, key=score, reverse=True)[:limit]
    return [
        PriorityArea(
            rank=rank,
            cluster_id=cluster.id,
            center=cluster.centroid,
            report_count=cluster.size,
            severity_score=round(cluster.severity, 2),
            priority_score=round(score(cluster), 3),
            dominant_type=dominant_type(cluster),
            recommended_action=recommend_action(cluster, hotspot_level(cluster.size)),
        )
        for rank, cluster in enumerate(ranked, start=1)
    ]
