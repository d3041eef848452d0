"""
cluster_engine.py — DBSCAN clustering of incident reports.

Groups reports by density-reachability on the sphere: a report with at
least `min_points` reports (itself included) within `epsilon_km` seeds a
cluster, and the cluster grows through every neighbour that is itself
dense. Reports reachable from no dense point are noise.

USAGE
─────
    from civicwatch.services.cluster_engine import ClusterEngine

    engine = ClusterEngine(epsilon_km=5.0, min_points=3)
    result = engine.cluster(reports)
    # result.clusters[0].members   → ["R-1", "R-2", "R-3"]
    # result.clusters[0].severity  → 3.5
    # result.noise                 → ["R-4"]

Epsilon is in KILOMETRES, the unit distance_km() returns. Passing a
degree-sized value such as 0.05 gives a 50 m neighbourhood, not 5 km.

Guarantees
──────────
  • clusters + noise partition the valid-location input exactly
  • reports with isReal=false or missing / non-finite coordinates are
    dropped with a warning and appear in neither
  • for a fixed input order the output (membership, member order and
    cluster order) is reproducible; clusters are numbered by discovery
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass

from civicwatch.core.errors import InvalidInputError
from civicwatch.core.weights import DEFAULT_SEVERITY_WEIGHTS, SeverityWeights
from civicwatch.models.analysis import Centroid, Cluster, ClusteringResult
from civicwatch.models.report import Report
from civicwatch.services.geo_math import distance_km

logger = logging.getLogger(__name__)

DEFAULT_EPSILON_KM = 5.0
DEFAULT_MIN_POINTS = 3


@dataclass(frozen=True)
class _Point:
    index: int
    report: Report
    lat: float
    lon: float


def validate_location(report: Report) -> None:
    """Raise InvalidInputError if the report cannot take part in clustering."""
    if not report.location.is_real:
        raise InvalidInputError(report.id, "simulated location (isReal=false)")
    if not report.location.has_finite_coordinates:
        raise InvalidInputError(report.id, "missing or non-finite coordinates")


def filter_valid_reports(reports: list[Report]) -> tuple[list[Report], list[InvalidInputError]]:
    """
    Split reports into (valid, rejected).

    A report is rejected when its location is simulated, its coordinates are
    missing / NaN / infinite, or its id repeats an earlier report's id.
    Input order is preserved for the valid list.
    """
    valid: list[Report] = []
    rejected: list[InvalidInputError] = []
    seen_ids: set[str] = set()

    for report in reports:
        try:
            validate_location(report)
            if report.id in seen_ids:
                raise InvalidInputError(report.id, "duplicate report id")
        except InvalidInputError as exc:
            rejected.append(exc)
            continue
        seen_ids.add(report.id)
        valid.append(report)

    return valid, rejected


class ClusterEngine:
    """DBSCAN over report coordinates with a per-cluster severity layer."""

    def __init__(
        self,
        epsilon_km: float = DEFAULT_EPSILON_KM,
        min_points: int = DEFAULT_MIN_POINTS,
        weights: SeverityWeights = DEFAULT_SEVERITY_WEIGHTS,
    ) -> None:
        if epsilon_km <= 0:
            raise ValueError(f"epsilon_km must be positive, got {epsilon_km}")
        if min_points < 1:
            raise ValueError(f"min_points must be >= 1, got {min_points}")
        self.epsilon_km = epsilon_km
        self.min_points = min_points
        self.weights = weights

    # ── Public API ────────────────────────────────────────────────────────────

    def cluster(self, reports: list[Report]) -> ClusteringResult:
        """Run DBSCAN over the valid-location subset of `reports`."""
        valid, rejected = filter_valid_reports(reports)
        for exc in rejected:
            logger.warning("Excluded from clustering: %s", exc)

        if not valid:
            return ClusteringResult(clusters=[], noise=[])

        points = [
            _Point(index=i, report=r, lat=r.location.latitude, lon=r.location.longitude)
            for i, r in enumerate(valid)
        ]
        groups, noise = self._dbscan(points)

        clusters = [
            self._summarise(cluster_id, [points[i].report for i in members])
            for cluster_id, members in enumerate(groups, start=1)
        ]
        logger.debug(
            "DBSCAN (eps=%.3f km, minPts=%d): %d points → %d clusters, %d noise",
            self.epsilon_km, self.min_points, len(points), len(clusters), len(noise),
        )
        return ClusteringResult(
            clusters=clusters,
            noise=[points[i].report.id for i in noise],
        )

    def member_score(self, report: Report) -> float:
        return self.weights.member_score(report.type, report.severity, report.status)

    def cluster_severity(self, members: list[Report]) -> float:
        if not members:
            return 0.0
        return sum(self.member_score(r) for r in members) / len(members)

    # ── DBSCAN core ───────────────────────────────────────────────────────────

    def _neighbors(self, points: list[_Point], p: _Point) -> list[int]:
        # Includes p itself (distance 0)
        return [
            q.index for q in points
            if distance_km(p.lat, p.lon, q.lat, q.lon) <= self.epsilon_km
        ]

    def _dbscan(self, points: list[_Point]) -> tuple[list[list[int]], list[int]]:
        visited: set[int] = set()
        assigned: dict[int, int] = {}
        provisional_noise: set[int] = set()
        groups: list[list[int]] = []

        for p in points:
            if p.index in visited:
                continue
            visited.add(p.index)

            seeds = self._neighbors(points, p)
            if len(seeds) < self.min_points:
                provisional_noise.add(p.index)
                continue

            cluster_id = len(groups)
            members = [p.index]
            assigned[p.index] = cluster_id

            frontier = deque(seeds)
            while frontier:
                q = frontier.popleft()
                if q not in visited:
                    visited.add(q)
                    q_neighbors = self._neighbors(points, points[q])
                    if len(q_neighbors) >= self.min_points:
                        frontier.extend(n for n in q_neighbors if n not in assigned)
                if q not in assigned:
                    # Border point (possibly first classified as noise)
                    assigned[q] = cluster_id
                    members.append(q)
                    provisional_noise.discard(q)

            groups.append(members)

        noise = [p.index for p in points if p.index in provisional_noise]
        return groups, noise

    # ── Post-processing ───────────────────────────────────────────────────────

    def _summarise(self, cluster_id: int, members: list[Report]) -> Cluster:
        n = len(members)
        lat = sum(r.location.latitude for r in members) / n
        lon = sum(r.location.longitude for r in members) / n
        histogram = Counter(r.type for r in members)

        return Cluster(
            id=cluster_id,
            members=[r.id for r in members],
            size=n,
            centroid=Centroid(latitude=lat, longitude=lon),
            severity=self.cluster_severity(members),
            type_histogram=dict(histogram),
        )


def cluster_reports(
    reports: list[Report],
    epsilon_km: float = DEFAULT_EPSILON_KM,
    min_points: int = DEFAULT_MIN_POINTS,
) -> ClusteringResult:
    """Convenience wrapper: one-shot DBSCAN with default severity weights."""
    return ClusterEngine(epsilon_km=epsilon_km, min_points=min_points).cluster(reports)
