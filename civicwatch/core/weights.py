"""
weights.py — Scoring constants shared by the clustering and risk layers.

Existing dashboards read cluster severity and risk index values produced
with exactly these numbers, so changing a default changes their output.
Pass a custom SeverityWeights / RiskWeights instance to tune instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field


def _default_type_weights() -> dict[str, float]:
    return {"medical": 2.0, "police": 1.5, "infrastructure": 0.5}


@dataclass(frozen=True)
class SeverityWeights:
    """Per-member contribution to a cluster's severity score."""

    base: float = 1.0
    type_weights: dict[str, float] = field(default_factory=_default_type_weights)
    high_severity_bonus: float = 2.0
    resolved_penalty: float = 0.5

    def member_score(self, report_type: str, severity: str | None, status: str) -> float:
        score = self.base + self.type_weights.get(report_type, 0.0)
        # Missing severity scores as "medium" (no bonus)
        if (severity or "medium") == "high":
            score += self.high_severity_bonus
        if status == "resolved":
            score -= self.resolved_penalty
        return score


@dataclass(frozen=True)
class RiskWeights:
    """Coefficients of the 0–100 risk index."""

    pending: float = 40.0
    cluster_density: float = 40.0
    volume: float = 20.0
    # Report count at which the volume term saturates
    volume_saturation: int = 10
    # Risk level buckets: low < medium_threshold <= medium <= high_threshold < high
    medium_threshold: int = 40
    high_threshold: int = 70


DEFAULT_SEVERITY_WEIGHTS = SeverityWeights()
DEFAULT_RISK_WEIGHTS = RiskWeights()

# Average urban driving speed used for travel-time estimates.
AVERAGE_URBAN_SPEED_KMPH = 40.0
