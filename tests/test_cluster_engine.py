"""
test_cluster_engine.py — DBSCAN clustering and cluster severity.

Run:
    pytest tests/test_cluster_engine.py -v
"""

import math

import pytest

from civicwatch.core.errors import InvalidInputError
from civicwatch.services.cluster_engine import (
    ClusterEngine,
    cluster_reports,
    filter_valid_reports,
    validate_location,
)
from civicwatch.services.geo_math import EARTH_RADIUS_KM

LONDON = (51.5074, -0.1278)


def km_north(lat: float, km: float) -> float:
    """Latitude `km` kilometres north of `lat` along a meridian."""
    return lat + math.degrees(km / EARTH_RADIUS_KM)


def _ids(result):
    return [c.members for c in result.clusters], result.noise


# ── Core DBSCAN behaviour ─────────────────────────────────────────────────────

class TestDbscan:
    def test_dense_group_plus_outlier(self, make_report):
        """Three reports within 1 km form a cluster; one 50 km away is noise."""
        lat, lon = LONDON
        reports = [
            make_report("A", lat, lon),
            make_report("B", km_north(lat, 0.5), lon),
            make_report("C", km_north(lat, 1.0), lon),
            make_report("D", km_north(lat, 50.0), lon),
        ]
        result = ClusterEngine(epsilon_km=5.0, min_points=3).cluster(reports)

        assert len(result.clusters) == 1
        assert result.clusters[0].members == ["A", "B", "C"]
        assert result.clusters[0].size == 3
        assert result.noise == ["D"]

    def test_below_density_threshold_is_all_noise(self, make_report):
        lat, lon = LONDON
        reports = [make_report("A", lat, lon), make_report("B", km_north(lat, 1.0), lon)]
        result = ClusterEngine(epsilon_km=5.0, min_points=3).cluster(reports)
        assert result.clusters == []
        assert result.noise == ["A", "B"]

    def test_neighbourhood_counts_the_point_itself(self, make_report):
        """min_points=1 makes every report a core point of its own cluster."""
        lat, lon = LONDON
        reports = [make_report("A", lat, lon), make_report("B", km_north(lat, 100.0), lon)]
        result = ClusterEngine(epsilon_km=1.0, min_points=1).cluster(reports)
        assert [c.members for c in result.clusters] == [["A"], ["B"]]
        assert result.noise == []

    def test_epsilon_boundary_is_inclusive(self, make_report):
        lat, lon = LONDON
        reports = [make_report("A", lat, lon), make_report("B", km_north(lat, 2.0), lon)]
        result = ClusterEngine(epsilon_km=2.0 + 1e-9, min_points=2).cluster(reports)
        assert len(result.clusters) == 1

    def test_border_point_first_seen_as_noise_joins_cluster(self, make_report):
        """
        E is visited first and is not dense on its own, but it lies within
        epsilon of core point A, so it ends up a border member of A's cluster.
        """
        lat, lon = LONDON
        reports = [
            make_report("E", km_north(lat, -4.2), lon),   # 4.2 km south of A
            make_report("A", lat, lon),
            make_report("B", km_north(lat, 0.5), lon),
            make_report("C", km_north(lat, 1.0), lon),
        ]
        result = ClusterEngine(epsilon_km=5.0, min_points=4).cluster(reports)

        assert result.noise == []
        assert len(result.clusters) == 1
        assert sorted(result.clusters[0].members) == ["A", "B", "C", "E"]

    def test_chain_expansion_through_core_points(self, make_report):
        """Reports 3 km apart in a line chain into one cluster with eps=3.5."""
        lat, lon = LONDON
        reports = [make_report(f"R{i}", km_north(lat, 3.0 * i), lon) for i in range(5)]
        result = ClusterEngine(epsilon_km=3.5, min_points=2).cluster(reports)
        assert len(result.clusters) == 1
        assert result.clusters[0].size == 5

    def test_two_separate_clusters_numbered_by_discovery(self, make_report):
        lat, lon = LONDON
        far = km_north(lat, 100.0)
        reports = [
            make_report("N1", far, lon), make_report("N2", far, lon), make_report("N3", far, lon),
            make_report("S1", lat, lon), make_report("S2", lat, lon), make_report("S3", lat, lon),
        ]
        result = ClusterEngine(epsilon_km=5.0, min_points=3).cluster(reports)
        assert [c.id for c in result.clusters] == [1, 2]
        assert result.clusters[0].members == ["N1", "N2", "N3"]
        assert result.clusters[1].members == ["S1", "S2", "S3"]

    def test_clusters_and_noise_partition_valid_input(self, make_report):
        lat, lon = LONDON
        offsets = [0, 0.2, 0.4, 9, 9.3, 9.6, 30, 55, 55.1]
        reports = [make_report(f"R{i}", km_north(lat, d), lon) for i, d in enumerate(offsets)]
        result = ClusterEngine(epsilon_km=1.0, min_points=3).cluster(reports)

        members = [m for c in result.clusters for m in c.members]
        assert len(members) == len(set(members))
        assert set(members).isdisjoint(result.noise)
        assert sorted(members + result.noise) == sorted(r.id for r in reports)

    def test_same_input_same_output(self, make_report):
        lat, lon = LONDON
        offsets = [0, 0.3, 0.6, 12, 12.2, 12.4, 40]
        reports = [make_report(f"R{i}", km_north(lat, d), lon) for i, d in enumerate(offsets)]
        engine = ClusterEngine(epsilon_km=1.0, min_points=3)
        assert _ids(engine.cluster(reports)) == _ids(engine.cluster(reports))

    def test_empty_input(self):
        result = ClusterEngine().cluster([])
        assert result.clusters == []
        assert result.noise == []

    def test_cluster_reports_wrapper_uses_defaults(self, make_report):
        lat, lon = LONDON
        reports = [make_report(str(i), lat, lon) for i in range(3)]
        assert len(cluster_reports(reports).clusters) == 1


# ── Invalid input ─────────────────────────────────────────────────────────────

class TestInvalidInput:
    def test_simulated_location_rejected(self, make_report):
        with pytest.raises(InvalidInputError):
            validate_location(make_report("X", is_real=False))

    def test_missing_coordinates_rejected(self, make_report):
        with pytest.raises(InvalidInputError):
            validate_location(make_report("X", lat=None))

    def test_nan_coordinates_rejected(self, make_report):
        with pytest.raises(InvalidInputError):
            validate_location(make_report("X", lon=float("nan")))

    def test_invalid_reports_in_neither_clusters_nor_noise(self, make_report):
        lat, lon = LONDON
        reports = [
            make_report("A", lat, lon),
            make_report("B", lat, lon),
            make_report("C", lat, lon),
            make_report("SIM", lat, lon, is_real=False),
            make_report("NAN", float("nan"), lon),
            make_report("INF", lat, float("inf")),
        ]
        result = ClusterEngine(epsilon_km=1.0, min_points=3).cluster(reports)
        everything = [m for c in result.clusters for m in c.members] + result.noise
        assert sorted(everything) == ["A", "B", "C"]

    def test_duplicate_ids_keep_first_occurrence(self, make_report):
        valid, rejected = filter_valid_reports([
            make_report("A", 51.0, 0.0),
            make_report("A", 52.0, 0.0),
            make_report("B", 51.0, 0.0),
        ])
        assert [r.id for r in valid] == ["A", "B"]
        assert valid[0].location.latitude == 51.0
        assert len(rejected) == 1
        assert rejected[0].report_id == "A"

    def test_rejections_are_logged(self, make_report, caplog):
        ClusterEngine().cluster([make_report("SIM", is_real=False)])
        assert "SIM" in caplog.text

    @pytest.mark.parametrize("epsilon, min_points", [(0, 3), (-1.0, 3), (5.0, 0)])
    def test_bad_parameters_raise(self, epsilon, min_points):
        with pytest.raises(ValueError):
            ClusterEngine(epsilon_km=epsilon, min_points=min_points)


# ── Severity ──────────────────────────────────────────────────────────────────

class TestClusterSeverity:
    def test_member_scores(self, make_report):
        engine = ClusterEngine()
        assert engine.member_score(make_report("m", type="medical")) == 3.0
        assert engine.member_score(make_report("p", type="police")) == 2.5
        assert engine.member_score(make_report("i", type="infrastructure")) == 1.5
        assert engine.member_score(make_report("h", type="medical", severity="high")) == 5.0
        assert engine.member_score(make_report("r", type="medical", status="resolved")) == 2.5

    def test_cluster_severity_is_mean_member_score(self, make_report):
        lat, lon = LONDON
        reports = [
            make_report("A", lat, lon, type="medical", severity="high"),   # 5.0
            make_report("B", lat, lon, type="police"),                     # 2.5
            make_report("C", lat, lon, type="infrastructure"),             # 1.5
        ]
        cluster = ClusterEngine(epsilon_km=1.0, min_points=3).cluster(reports).clusters[0]
        assert cluster.severity == pytest.approx(3.0)
        assert cluster.type_histogram == {"medical": 1, "police": 1, "infrastructure": 1}

    def test_upgrading_a_member_never_lowers_severity(self, make_report):
        lat, lon = LONDON
        engine = ClusterEngine(epsilon_km=1.0, min_points=3)
        low = [make_report(str(i), lat, lon, type="infrastructure") for i in range(3)]
        high = low[:2] + [make_report("2", lat, lon, type="medical", severity="high")]
        assert engine.cluster(high).clusters[0].severity >= engine.cluster(low).clusters[0].severity

    @pytest.mark.parametrize("type", ["medical", "police", "infrastructure"])
    def test_resolving_a_member_never_raises_severity(self, make_report, type):
        lat, lon = LONDON
        engine = ClusterEngine(epsilon_km=1.0, min_points=3)
        pending = [make_report(str(i), lat, lon, type=type) for i in range(3)]
        resolved = pending[:2] + [make_report("2", lat, lon, type=type, status="resolved")]

        before = engine.cluster(pending).clusters[0]
        after = engine.cluster(resolved).clusters[0]

        assert after.members == before.members
        assert after.severity <= before.severity
        assert after.severity == pytest.approx(before.severity - 0.5 / 3)

    def test_centroid_is_member_mean(self, make_report):
        reports = [
            make_report("A", 51.0, 0.0),
            make_report("B", 51.002, 0.002),
            make_report("C", 51.004, 0.004),
        ]
        cluster = ClusterEngine(epsilon_km=2.0, min_points=3).cluster(reports).clusters[0]
        assert cluster.centroid.latitude == pytest.approx(51.002)
        assert cluster.centroid.longitude == pytest.approx(0.002)


# ── Reference scenario ────────────────────────────────────────────────────────

class TestReferenceScenario:
    def test_bangalore_three_close_one_far(self, make_report):
        reports = [
            make_report("report1", 12.97, 77.59),
            make_report("report2", 12.971, 77.591),
            make_report("report3", 12.972, 77.592),
            make_report("report4", 13.5, 78.1),
        ]
        result = ClusterEngine(epsilon_km=5, min_points=3).cluster(reports)

        assert len(result.clusters) == 1
        assert result.clusters[0].size == 3
        assert set(result.clusters[0].members) == {"report1", "report2", "report3"}
        assert set(result.noise) == {"report4"}
