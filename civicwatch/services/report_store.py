"""
report_store.py — Read-only access to stored incident reports.

Reports are written by the citizen capture flow. The analysis core only
ever calls:

    reports = await store.get_all("medical")

Two implementations:
  MongoReportStore     Motor, `reports` collection, one query per type
  InMemoryReportStore  in-memory list filtered by type (tests, offline demos)

Stored documents come from more than one client version, so field names
are accepted in both camelCase and snake_case. Documents that still fail
validation are skipped with a warning instead of failing the whole load.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from civicwatch.core.database import REPORTS_COLLECTION
from civicwatch.models.report import REPORT_TYPES, Report

logger = logging.getLogger(__name__)


class ReportStore(Protocol):
    async def get_all(self, report_type: str) -> list[Report]: ...


# ── Helpers ───────────────────────────────────────────────────────────────────

def _doc_to_report(doc: dict) -> Report:
    location = doc.get("location") or {}
    return Report(
        id=str(doc.get("id") or doc["_id"]),
        type=doc.get("type"),
        location={
            "latitude": location.get("latitude"),
            "longitude": location.get("longitude"),
            "is_real": location.get("isReal", location.get("is_real", True)),
        },
        status=doc.get("status") or "pending",
        severity=doc.get("severity"),
        created_at=doc.get("createdAt") or doc.get("created_at") or doc.get("timestamp"),
    )


# ── Implementations ───────────────────────────────────────────────────────────

class MongoReportStore:
    """Reads reports from MongoDB. `db` is the database from get_db()."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db

    async def get_all(self, report_type: str) -> list[Report]:
        cursor = self.db[REPORTS_COLLECTION].find({"type": report_type})

        reports: list[Report] = []
        async for doc in cursor:
            try:
                reports.append(_doc_to_report(doc))
            except (KeyError, ValidationError) as exc:
                logger.warning("Skipping malformed report doc %s: %s", doc.get("_id"), exc)
        return reports


class InMemoryReportStore:
    def __init__(self, reports: Optional[Iterable[Report]] = None) -> None:
        self._by_type: dict[str, list[Report]] = {}
        for report in reports or []:
            self.add(report)

    def add(self, report: Report) -> None:
        self._by_type.setdefault(report.type, []).append(report)

    async def get_all(self, report_type: str) -> list[Report]:
        return list(self._by_type.get(report_type, []))


async def load_reports(
    store: ReportStore, report_types: Iterable[str] = REPORT_TYPES
) -> list[Report]:
    """All reports of the given types, concatenated in type order."""
    reports: list[Report] = []
    for report_type in report_types:
        batch = await store.get_all(report_type)
        logger.debug("Loaded %d %s reports", len(batch), report_type)
        reports.extend(batch)
    return reports
