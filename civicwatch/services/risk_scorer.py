"""
risk_scorer.py — 0–100 risk index for a report snapshot.

    riskIndex = min(100, round(pendingRatio    × 40
                             + clusterDensity  × 40
                             + min(count/10,1) × 20))

  pendingRatio    share of reports still "pending"
  clusterDensity  largest cluster size / total reports
  count           number of reports (saturates at 10)

Levels: low < 40 ≤ medium ≤ 70 < high. An empty snapshot is
{overall: 0, riskLevel: "unknown"} rather than a division by zero.

USAGE
─────
    from civicwatch.services.risk_scorer import assess_risk

    risk = assess_risk(reports, clustering)
    # risk.overall     → 63
    # risk.risk_level  → "medium"
    # risk.by_type     → {"medical": 4, "police": 2}

The formula is deterministic and idempotent: scoring the same snapshot
twice yields the same result.
"""

from __future__ import annotations

import math
from collections import Counter

from civicwatch.core.weights import DEFAULT_RISK_WEIGHTS, RiskWeights
from civicwatch.models.analysis import ClusteringResult, RiskAssessment, RiskComponents
from civicwatch.models.report import Report


def _round_half_up(value: float) -> int:
    # Half-up, not banker's rounding (2.5 → 3)
    return int(math.floor(value + 0.5))


# ── Pure scoring functions ────────────────────────────────────────────────────

def compute_components(
    reports: list[Report],
    clustering: ClusteringResult,
    weights: RiskWeights = DEFAULT_RISK_WEIGHTS,
) -> RiskComponents:
    total = len(reports)
    pending = sum(1 for r in reports if r.status == "pending")
    return RiskComponents(
        pending_ratio=pending / total,
        cluster_density=clustering.largest_cluster_size / total,
        volume_factor=min(total / weights.volume_saturation, 1.0),
    )


def compute_risk_index(
    components: RiskComponents, weights: RiskWeights = DEFAULT_RISK_WEIGHTS
) -> int:
    """Combine the three components into an integer in [0, 100]."""
    raw = (
        components.pending_ratio * weights.pending
        + components.cluster_density * weights.cluster_density
        + components.volume_factor * weights.volume
    )
    return max(0, min(100, _round_half_up(raw)))


def compute_risk_level(risk_index: int, weights: RiskWeights = DEFAULT_RISK_WEIGHTS) -> str:
    """Map a risk index → 'low' | 'medium' | 'high'."""
    if risk_index > weights.high_threshold:
        return "high"
    if risk_index >= weights.medium_threshold:
        return "medium"
    return "low"


# ── Public entry point ────────────────────────────────────────────────────────

def assess_risk(
    reports: list[Report],
    clustering: ClusteringResult,
    weights: RiskWeights = DEFAULT_RISK_WEIGHTS,
) -> RiskAssessment:
    """Score a snapshot. `reports` is the population the ratios are taken over."""
    if not reports:
        return RiskAssessment(overall=0, risk_level="unknown")

    components = compute_components(reports, clustering, weights)
    overall = compute_risk_index(components, weights)

    return RiskAssessment(
        overall=overall,
        risk_level=compute_risk_level(overall, weights),
        by_type=dict(Counter(r.type for r in reports)),
        by_status=dict(Counter(r.status for r in reports)),
        components=components,
    )
