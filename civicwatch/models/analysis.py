"""
analysis.py — Pydantic models for the clustering / analysis pipeline.

Everything here is derived and ephemeral: recomputed on every analysis run
and never stored as authoritative state.

  Cluster / ClusteringResult  — DBSCAN output (clusters + noise ids)
  RiskAssessment              — 0–100 risk index and its breakdown
  TemporalProfile             — hour / weekday / month distributions + peaks
  GeoStatistics / Hotspot     — location analysis of the snapshot
  PriorityArea                — ranked clusters with a dispatch recommendation
  AnalysisResult              — composite object returned to the UI / export
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from civicwatch.models.base import CamelModel
from civicwatch.models.report import Report

RiskLevel = Literal["low", "medium", "high", "unknown"]
HotspotLevel = Literal["low", "medium", "high"]
InsightSource = Literal["generator", "fallback"]


# ── Clustering ────────────────────────────────────────────────────────────────

class Centroid(CamelModel):
    latitude: float
    longitude: float


class Cluster(CamelModel):
    id: int                              # 1-based, in order of seed discovery
    members: list[str]                   # report ids, discovery order
    size: int
    centroid: Centroid
    severity: float                      # mean weighted member score
    type_histogram: dict[str, int]


class ClusteringResult(CamelModel):
    clusters: list[Cluster] = Field(default_factory=list)
    noise: list[str] = Field(default_factory=list)

    @property
    def largest_cluster_size(self) -> int:
        return max((c.size for c in self.clusters), default=0)


# ── Risk ──────────────────────────────────────────────────────────────────────

class RiskComponents(CamelModel):
    pending_ratio: float
    cluster_density: float
    volume_factor: float


class RiskAssessment(CamelModel):
    overall: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    by_type: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    components: Optional[RiskComponents] = None


# ── Temporal ──────────────────────────────────────────────────────────────────

class TemporalDistributions(CamelModel):
    hourly: list[int]     # 24 buckets, index = hour of day
    weekly: list[int]     # 7 buckets, index 0 = Sunday
    monthly: list[int]    # 12 buckets, index 0 = January


class TemporalProfile(CamelModel):
    peak_hour: Optional[int] = None
    peak_weekday: Optional[str] = None
    peak_weekday_index: Optional[int] = None
    peak_month: Optional[str] = None
    peak_month_index: Optional[int] = None
    distributions: TemporalDistributions
    timezone: str = "UTC"


# ── Location analysis ─────────────────────────────────────────────────────────

class Spread(CamelModel):
    latitude: float
    longitude: float


class BoundingBox(CamelModel):
    north: float
    south: float
    east: float
    west: float


class GeoStatistics(CamelModel):
    center: Centroid
    spread: Spread
    radius_km: float
    bounding_box: BoundingBox


class Hotspot(CamelModel):
    id: int
    center: Centroid
    report_count: int
    types: dict[str, int]
    severity: HotspotLevel
    cluster_severity: float


class PriorityArea(CamelModel):
    rank: int
    cluster_id: int
    center: Centroid
    report_count: int
    severity_score: float
    priority_score: float
    dominant_type: str
    recommended_action: str


# ── Pipeline I/O ──────────────────────────────────────────────────────────────

class AnalysisOptions(CamelModel):
    """Per-request overrides. Omitted fields fall back to PipelineConfig."""

    epsilon_km: Optional[float] = Field(default=None, gt=0)
    min_points: Optional[int] = Field(default=None, ge=1)
    date_range_days: Optional[int] = Field(default=None, ge=1, le=3650)
    include_insights: bool = True
    priority_limit: int = Field(default=5, ge=1, le=50)


class AnalysisMetadata(CamelModel):
    report_count: int                    # reports supplied
    analyzed_count: int                  # after the date-range filter
    valid_location_count: int            # entered clustering
    dropped_count: int                   # rejected by the location filter
    epsilon_km: float
    min_points: int
    date_range_days: Optional[int] = None
    stages: list[str] = Field(default_factory=list)


class AnalysisResult(CamelModel):
    clustering: ClusteringResult
    risk_index: int = Field(ge=0, le=100)
    risk: RiskAssessment
    temporal_profile: TemporalProfile
    geo_statistics: Optional[GeoStatistics] = None
    hotspots: list[Hotspot] = Field(default_factory=list)
    priority_areas: list[PriorityArea] = Field(default_factory=list)
    insight_text: Optional[str] = None
    insight_source: InsightSource = "fallback"
    generated_at: datetime
    metadata: AnalysisMetadata


class AnalyzeRequest(CamelModel):
    """Request body for POST /api/v1/analysis."""

    reports: list[Report] = Field(default_factory=list)
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)
