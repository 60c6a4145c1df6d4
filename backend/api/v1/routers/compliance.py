"""
Compliance Router — Shared rule evaluation and today's compliance status.

The temperature endpoint lets entry forms compute `is_compliant` with the same
rules the alert engine relies on, so thresholds live in one place.
"""

from dataclasses import asdict
from datetime import date, datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.store import checklist_record, cleaning_record, temperature_log_record
from api.deps import get_tenant_db, get_user_id
from compliance.rules import (
    TEMP_THRESHOLDS,
    is_temperature_compliant,
    summarize_day,
    threshold_for,
    week_commencing,
)
from db.models import Checklist, CleaningRecord, TemperatureLog

router = APIRouter(prefix="/api/v1/compliance", tags=["compliance"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class TemperatureReading(BaseModel):
    type: Literal["fridge", "freezer", "hot_hold", "delivery", "dishwasher", "probe_calibration"]
    temperature: float | None = None
    ice_temp: float | None = None
    boiling_temp: float | None = None


class TemperatureEvaluation(BaseModel):
    type: str
    is_compliant: bool
    target_min: float | None = None
    target_max: float | None = None
    ice_range: tuple[float, float] | None = None
    boiling_range: tuple[float, float] | None = None


class DailyComplianceResponse(BaseModel):
    date: date
    week_commencing: date
    temperature_log_count: int
    non_compliant_count: int
    temperature_compliance_pct: int | None
    opening_complete: bool
    closing_complete: bool
    cleaning_complete: bool
    weekly_cleaning_complete: bool


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post("/temperature", response_model=TemperatureEvaluation)
async def evaluate_temperature(reading: TemperatureReading):
    """Evaluate a reading before it is saved."""
    evaluation = TemperatureEvaluation(
        type=reading.type,
        is_compliant=is_temperature_compliant(
            reading.type,
            reading.temperature,
            ice_temp=reading.ice_temp,
            boiling_temp=reading.boiling_temp,
        ),
    )
    if reading.type == "probe_calibration":
        evaluation.ice_range = TEMP_THRESHOLDS["probe_ice"]
        evaluation.boiling_range = TEMP_THRESHOLDS["probe_boiling"]
    else:
        bounds = threshold_for(reading.type)
        if bounds:
            evaluation.target_min, evaluation.target_max = bounds
    return evaluation


@router.get("/today", response_model=DailyComplianceResponse)
async def get_daily_compliance(
    day: date | None = None,
    db: AsyncSession = Depends(get_tenant_db),
    user_id: UUID = Depends(get_user_id),
):
    """Dashboard status for a day (defaults to today, UTC)."""
    day = day or datetime.utcnow().date()
    monday = week_commencing(day)

    logs = await db.execute(
        select(TemperatureLog).where(TemperatureLog.user_id == user_id, TemperatureLog.date == day)
    )
    checklists = await db.execute(
        select(Checklist).where(Checklist.user_id == user_id, Checklist.date == day)
    )
    cleaning = await db.execute(
        select(CleaningRecord).where(
            CleaningRecord.user_id == user_id,
            CleaningRecord.date >= monday,
            CleaningRecord.date <= day,
        )
    )

    summary = summarize_day(
        day,
        [temperature_log_record(row) for row in logs.scalars().all()],
        [checklist_record(row) for row in checklists.scalars().all()],
        [cleaning_record(row) for row in cleaning.scalars().all()],
    )
    return DailyComplianceResponse(week_commencing=monday, **asdict(summary))
