"""
analysis_pipeline.py — One analysis run over a snapshot of reports.

State machine (per run):

    idle ──► clustering ──► scoring ──► summarizing ──► done
                  │             │             │
                  └─────────────┴─────────────┴──► error   (unexpected exception)

  clustering   date-range filter, location validation, DBSCAN
  scoring      risk index, temporal profile, geo statistics, hotspots,
               priority areas
  summarizing  only when an InsightGenerator is injected and the request
               asks for insights; otherwise scoring goes straight to done

The insight generator is optional and untrusted: a timeout, an exception
or an empty answer all substitute the deterministic fallback summary.
The run itself never fails because of it.

USAGE
─────
    from civicwatch.services.analysis_pipeline import analyze_reports

    result = await analyze_reports(reports)
    # result.risk_index       → 63
    # result.insight_source   → "fallback"
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from civicwatch.core.errors import EmptyInputError
from civicwatch.core.weights import (
    DEFAULT_RISK_WEIGHTS,
    DEFAULT_SEVERITY_WEIGHTS,
    RiskWeights,
    SeverityWeights,
)
from civicwatch.models.analysis import (
    AnalysisMetadata,
    AnalysisOptions,
    AnalysisResult,
    ClusteringResult,
    GeoStatistics,
    Hotspot,
    RiskAssessment,
    TemporalProfile,
)
from civicwatch.models.report import Report
from civicwatch.services.cluster_engine import (
    DEFAULT_EPSILON_KM,
    DEFAULT_MIN_POINTS,
    ClusterEngine,
)
from civicwatch.services.hotspots import (
    calculate_geo_statistics,
    identify_hotspots,
    rank_priority_areas,
)
from civicwatch.services.risk_scorer import assess_risk
from civicwatch.services.temporal_analyzer import analyze_timestamps

logger = logging.getLogger(__name__)

NO_REPORTS_MESSAGE = "No reports available for analysis"


class PipelineState(str, Enum):
    IDLE        = "idle"
    CLUSTERING  = "clustering"
    SCORING     = "scoring"
    SUMMARIZING = "summarizing"
    DONE        = "done"
    ERROR       = "error"


class InsightGenerator(Protocol):
    async def summarize(self, prompt: str, max_tokens: int) -> Optional[str]: ...


@dataclass(frozen=True)
class PipelineConfig:
    epsilon_km: float = DEFAULT_EPSILON_KM
    min_points: int = DEFAULT_MIN_POINTS
    severity_weights: SeverityWeights = DEFAULT_SEVERITY_WEIGHTS
    risk_weights: RiskWeights = DEFAULT_RISK_WEIGHTS
    timezone: str = "UTC"
    insight_timeout_seconds: float = 10.0
    insight_max_tokens: int = 1000
    priority_limit: int = 5


# ── Insight prompt ────────────────────────────────────────────────────────────

@dataclass
class InsightPayload:
    """Everything the insight generator is told about one run."""

    report_count: int
    analyzed_count: int
    date_range_days: Optional[int]
    generated_at: datetime
    cluster_count: int
    noise_count: int
    risk: RiskAssessment
    temporal: TemporalProfile
    geo_statistics: Optional[GeoStatistics]
    hotspots: list[Hotspot] = field(default_factory=list)


def _date_range_label(days: Optional[int]) -> str:
    return f"Last {days} days" if days else "All time"


def _peak_label(temporal: TemporalProfile) -> str:
    if temporal.peak_hour is None:
        return "no peak"
    return f"{temporal.peak_hour:02d}:00 on {temporal.peak_weekday}"


def build_insight_prompt(payload: InsightPayload) -> str:
    lines = [
        "Generate a comprehensive incident analysis report:",
        "",
        "METADATA:",
        f"- Total Reports: {payload.report_count}",
        f"- Analyzed Reports: {payload.analyzed_count}",
        f"- Date Range: {_date_range_label(payload.date_range_days)}",
        f"- Generated: {payload.generated_at.isoformat()}",
        "",
        "LOCATION ANALYSIS:",
    ]
    if payload.geo_statistics is not None:
        geo = payload.geo_statistics
        lines.append(
            f"- Center: ({geo.center.latitude:.4f}, {geo.center.longitude:.4f}), "
            f"approx. radius {geo.radius_km} km"
        )
    else:
        lines.append("- No location data")
    lines.append(f"- Hotspots: {len(payload.hotspots)}")
    for hotspot in payload.hotspots[:5]:
        types = ", ".join(f"{k}: {v}" for k, v in sorted(hotspot.types.items()))
        lines.append(
            f"  - #{hotspot.id}: {hotspot.report_count} reports ({types}), {hotspot.severity} severity"
        )

    risk = payload.risk
    lines += [
        "",
        "ML ANALYSIS:",
        f"- {payload.cluster_count} incident clusters detected, {payload.noise_count} isolated reports",
        f"- Peak activity: {_peak_label(payload.temporal)}",
        f"- Peak month: {payload.temporal.peak_month or 'n/a'}",
        f"- Risk Level: {risk.risk_level} ({risk.overall}/100)",
        f"- By type: {dict(sorted(risk.by_type.items()))}",
        f"- By status: {dict(sorted(risk.by_status.items()))}",
        "",
        "Provide:",
        "1. Executive Summary (2-3 sentences)",
        "2. Key Findings (3-5 bullet points)",
        "3. Actionable Recommendations (3-5 bullet points)",
        "4. Conclusion (1-2 sentences)",
    ]
    return "\n".join(lines)


def build_fallback_summary(
    analyzed_count: int,
    clustering: ClusteringResult,
    risk: RiskAssessment,
    temporal: TemporalProfile,
    hotspots: list[Hotspot],
) -> str:
    """Template summary used whenever no generated insight is available."""
    parts = [
        f"Analyzed {analyzed_count} reports: {len(clustering.clusters)} cluster(s) detected, "
        f"{len(clustering.noise)} isolated report(s).",
        f"Overall risk is {risk.risk_level} ({risk.overall}/100).",
    ]
    if temporal.peak_hour is not None:
        parts.append(f"Peak activity at {_peak_label(temporal)}.")
    if hotspots:
        top = hotspots[0]
        dominant = max(sorted(top.types), key=lambda t: top.types[t])
        parts.append(
            f"Largest hotspot: {top.report_count} reports near "
            f"({top.center.latitude:.4f}, {top.center.longitude:.4f}), mostly {dominant}."
        )
    return " ".join(parts)


# ── Run tracking ──────────────────────────────────────────────────────────────

class _RunTracker:
    def __init__(self) -> None:
        self.state = PipelineState.IDLE
        self.stages: list[str] = []

    def advance(self, state: PipelineState) -> None:
        logger.debug("Pipeline %s → %s", self.state.value, state.value)
        self.state = state
        self.stages.append(state.value)


def _as_utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def filter_by_date_range(reports: list[Report], days: int, now: datetime) -> list[Report]:
    """Reports created within the last `days` days of `now`."""
    cutoff = now - timedelta(days=days)
    return [r for r in reports if _as_utc(r.created_at) >= cutoff]


# ── Pipeline ──────────────────────────────────────────────────────────────────

class AnalysisPipeline:
    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        insight_generator: Optional[InsightGenerator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.insight_generator = insight_generator
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def analyze(
        self, reports: list[Report], options: Optional[AnalysisOptions] = None
    ) -> AnalysisResult:
        """
        Run the full pipeline over `reports`.

        Raises:
            EmptyInputError: no reports, or none left after the date filter.
        """
        options = options or AnalysisOptions()
        if not reports:
            raise EmptyInputError(NO_REPORTS_MESSAGE)

        run = _RunTracker()
        try:
            return await self._run(run, reports, options)
        except EmptyInputError:
            raise
        except Exception:
            run.advance(PipelineState.ERROR)
            logger.exception("Analysis run failed after stages %s", run.stages)
            raise

    async def _run(
        self, run: _RunTracker, reports: list[Report], options: AnalysisOptions
    ) -> AnalysisResult:
        cfg = self.config
        now = self._clock()
        epsilon_km = options.epsilon_km or cfg.epsilon_km
        min_points = options.min_points or cfg.min_points

        # ── clustering ────────────────────────────────────────────────────────
        run.advance(PipelineState.CLUSTERING)
        analyzed = reports
        if options.date_range_days:
            analyzed = filter_by_date_range(reports, options.date_range_days, now)
            if not analyzed:
                raise EmptyInputError(
                    f"No reports in the last {options.date_range_days} days"
                )

        engine = ClusterEngine(epsilon_km, min_points, cfg.severity_weights)
        clustering = engine.cluster(analyzed)
        valid_count = sum(c.size for c in clustering.clusters) + len(clustering.noise)

        # ── scoring ───────────────────────────────────────────────────────────
        run.advance(PipelineState.SCORING)
        risk = assess_risk(analyzed, clustering, cfg.risk_weights)
        temporal = analyze_timestamps((r.created_at for r in analyzed), cfg.timezone)
        geo_statistics = calculate_geo_statistics(analyzed)
        hotspots = identify_hotspots(clustering)
        priority_areas = rank_priority_areas(
            clustering.clusters, limit=options.priority_limit or cfg.priority_limit
        )

        insight_text = build_fallback_summary(
            len(analyzed), clustering, risk, temporal, hotspots
        )
        insight_source = "fallback"

        # ── summarizing ───────────────────────────────────────────────────────
        if self.insight_generator is not None and options.include_insights:
            run.advance(PipelineState.SUMMARIZING)
            payload = InsightPayload(
                report_count=len(reports),
                analyzed_count=len(analyzed),
                date_range_days=options.date_range_days,
                generated_at=now,
                cluster_count=len(clustering.clusters),
                noise_count=len(clustering.noise),
                risk=risk,
                temporal=temporal,
                geo_statistics=geo_statistics,
                hotspots=hotspots,
            )
            generated = await self._generate(build_insight_prompt(payload))
            if generated:
                insight_text = generated
                insight_source = "generator"

        run.advance(PipelineState.DONE)
        logger.info(
            "Analysis done: %d reports, %d clusters, risk %d (%s), insight=%s",
            len(analyzed), len(clustering.clusters), risk.overall, risk.risk_level, insight_source,
        )
        return AnalysisResult(
            clustering=clustering,
            risk_index=risk.overall,
            risk=risk,
            temporal_profile=temporal,
            geo_statistics=geo_statistics,
            hotspots=hotspots,
            priority_areas=priority_areas,
            insight_text=insight_text,
            insight_source=insight_source,
            generated_at=now,
            metadata=AnalysisMetadata(
                report_count=len(reports),
                analyzed_count=len(analyzed),
                valid_location_count=valid_count,
                dropped_count=len(analyzed) - valid_count,
                epsilon_km=epsilon_km,
                min_points=min_points,
                date_range_days=options.date_range_days,
                stages=run.stages,
            ),
        )

    async def _generate(self, prompt: str) -> Optional[str]:
        """Generated text, or None on timeout / error / blank answer."""
        cfg = self.config
        try:
            text = await asyncio.wait_for(
                self.insight_generator.summarize(prompt, cfg.insight_max_tokens),
                timeout=cfg.insight_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Insight generator timed out after %.1fs; using fallback summary",
                cfg.insight_timeout_seconds,
            )
            return None
        except Exception as exc:
            logger.warning("Insight generator failed: %s; using fallback summary", exc)
            return None

        if not isinstance(text, str) or not text.strip():
            logger.warning(
                "Insight generator returned no usable text (%s); using fallback summary",
                type(text).__name__,
            )
            return None
        return text.strip()


# ── Public entry point ────────────────────────────────────────────────────────

def empty_result(
    report_count: int,
    config: PipelineConfig,
    options: AnalysisOptions,
    generated_at: datetime,
    message: str = NO_REPORTS_MESSAGE,
) -> AnalysisResult:
    return AnalysisResult(
        clustering=ClusteringResult(),
        risk_index=0,
        risk=RiskAssessment(overall=0, risk_level="unknown"),
        temporal_profile=analyze_timestamps([], config.timezone),
        insight_text=message,
        insight_source="fallback",
        generated_at=generated_at,
        metadata=AnalysisMetadata(
            report_count=report_count,
            analyzed_count=0,
            valid_location_count=0,
            dropped_count=0,
            epsilon_km=options.epsilon_km or config.epsilon_km,
            min_points=options.min_points or config.min_points,
            date_range_days=options.date_range_days,
        ),
    )


async def analyze_reports(
    reports: list[Report],
    config: Optional[PipelineConfig] = None,
    generator: Optional[InsightGenerator] = None,
    options: Optional[AnalysisOptions] = None,
) -> AnalysisResult:
    """Analyze a snapshot. Empty input yields an empty result, never an error."""
    pipeline = AnalysisPipeline(config, generator)
    options = options or AnalysisOptions()
    try:
        return await pipeline.analyze(reports, options)
    except EmptyInputError as exc:
        logger.info("Nothing to analyze: %s", exc)
        return empty_result(
            len(reports), pipeline.config, options, pipeline._clock(), str(exc)
        )
