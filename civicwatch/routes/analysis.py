"""
analysis.py — Incident analysis endpoints for the admin dashboard.

Routes:
  POST /api/v1/analysis         — analyze the reports in the request body (rate limited)
  GET  /api/v1/analysis/stored  — load reports from MongoDB, then analyze them

HOW A REQUEST FLOWS
───────────────────
1. The body (or the report store) supplies a snapshot of reports.
2. AnalysisPipeline runs DBSCAN clustering, risk scoring, the temporal
   profile, hotspots and priority areas.
3. If insights are enabled, Gemini is asked for a written summary. Any
   failure there falls back to a template summary, never to an error.
4. An empty snapshot is answered with an empty result (riskIndex 0,
   "No reports available for analysis"), not a 4xx.

TESTING
───────
  pytest tests/test_analysis_routes.py -v

  curl -X POST http://localhost:8000/api/v1/analysis \\
    -H 'Content-Type: application/json' \\
    -d '{"reports": [], "options": {"dateRangeDays": 30}}'

  curl "http://localhost:8000/api/v1/analysis/stored?days=30&types=medical,police"
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from civicwatch.ai.gemini_client import gemini_client
from civicwatch.core.config import settings
from civicwatch.core.database import get_db
from civicwatch.core.rate_limit import limiter
from civicwatch.models.analysis import AnalysisOptions, AnalysisResult, AnalyzeRequest
from civicwatch.models.report import REPORT_TYPES
from civicwatch.services.analysis_pipeline import (
    InsightGenerator,
    PipelineConfig,
    analyze_reports,
)
from civicwatch.services.report_store import MongoReportStore, ReportStore, load_reports

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/analysis", tags=["analysis"])


# ── Dependencies ──────────────────────────────────────────────────────────────

def get_pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        epsilon_km=settings.dbscan_epsilon_km,
        min_points=settings.dbscan_min_points,
        timezone=settings.temporal_timezone,
        insight_timeout_seconds=settings.insight_timeout_seconds,
        insight_max_tokens=settings.insight_max_tokens,
    )


def get_insight_generator() -> Optional[InsightGenerator]:
    return gemini_client if settings.insight_enabled else None


def get_report_store(db=Depends(get_db)) -> Optional[ReportStore]:
    return MongoReportStore(db) if db is not None else None


def _parse_types(raw: Optional[str]) -> list[str]:
    if not raw:
        return list(REPORT_TYPES)
    types = [t.strip().lower() for t in raw.split(",") if t.strip()]
    unknown = [t for t in types if t not in REPORT_TYPES]
    if unknown:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown report type(s): {', '.join(unknown)}. Expected {', '.join(REPORT_TYPES)}.",
        )
    return types


# ── POST /api/v1/analysis ─────────────────────────────────────────────────────

@router.post("", response_model=AnalysisResult)
@limiter.limit(settings.analysis_rate_limit)
async def analyze(
    request: Request,
    payload: AnalyzeRequest,
    config: PipelineConfig = Depends(get_pipeline_config),
    generator: Optional[InsightGenerator] = Depends(get_insight_generator),
):
    """Cluster, score and summarise the supplied reports."""
    logger.info("Analysis requested for %d reports", len(payload.reports))
    return await analyze_reports(payload.reports, config, generator, payload.options)


# ── GET /api/v1/analysis/stored ───────────────────────────────────────────────

@router.get("/stored", response_model=AnalysisResult)
async def analyze_stored(
    days:  Optional[int] = Query(default=None, ge=1, le=3650),
    types: Optional[str] = Query(default=None, description="Comma-separated report types"),
    store: Optional[ReportStore] = Depends(get_report_store),
    config: PipelineConfig = Depends(get_pipeline_config),
    generator: Optional[InsightGenerator] = Depends(get_insight_generator),
):
    """Analyze reports from the report store, optionally limited to the last `days` days."""
    report_types = _parse_types(types)

    if store is None:
        logger.warning("Report store unavailable — analyzing an empty snapshot")
        reports = []
    else:
        reports = await load_reports(store, report_types)

    options = AnalysisOptions(date_range_days=days)
    return await analyze_reports(reports, config, generator, options)
