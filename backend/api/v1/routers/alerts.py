"""
Alerts Router — Alert list, acknowledgement and dismissal.

Alerts are created only by the alert engine. Users move them out of the
active state in one of two ways: acknowledge (kept, flagged) or dismiss
(deleted).
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_tenant_db, get_user_id
from db.models import Alert

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class AlertResponse(BaseModel):
    alert_id: UUID
    user_id: UUID
    type: str
    severity: str
    title: str
    message: str
    related_id: UUID | None
    acknowledged: bool
    created_at: datetime
    acknowledged_at: datetime | None

    model_config = {"from_attributes": True}


class AlertSummary(BaseModel):
    total: int
    active: int
    acknowledged: int
    critical: int
    high: int


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[AlertResponse])
async def list_alerts(
    acknowledged: bool | None = None,
    severity: str | None = None,
    type: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_tenant_db),
    user_id: UUID = Depends(get_user_id),
):
    """List alerts with filters, newest first."""
    query = select(Alert).where(Alert.user_id == user_id)
    if acknowledged is not None:
        query = query.where(Alert.acknowledged == acknowledged)
    if severity:
        query = query.where(Alert.severity == severity)
    if type:
        query = query.where(Alert.type == type)
    query = query.order_by(Alert.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/summary", response_model=AlertSummary)
async def get_alert_summary(
    db: AsyncSession = Depends(get_tenant_db),
    user_id: UUID = Depends(get_user_id),
):
    """Alert counts; severity counts cover active alerts only."""
    result = await db.execute(
        select(Alert.acknowledged, Alert.severity, func.count())
        .where(Alert.user_id == user_id)
        .group_by(Alert.acknowledged, Alert.severity)
    )

    total = active = acknowledged = critical = high = 0
    for is_acknowledged, severity, count in result.all():
        total += count
        if is_acknowledged:
            acknowledged += count
            continue
        active += count
        if severity == "critical":
            critical += count
        elif severity == "high":
            high += count

    return AlertSummary(total=total, active=active, acknowledged=acknowledged, critical=critical, high=high)


async def _get_alert(db: AsyncSession, alert_id: UUID, user_id: UUID) -> Alert:
    result = await db.execute(select(Alert).where(Alert.alert_id == alert_id, Alert.user_id == user_id))
    alert = result.scalar_one_or_none()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert


@router.patch("/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(
    alert_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user_id: UUID = Depends(get_user_id),
):
    """Acknowledge an active alert."""
    alert = await _get_alert(db, alert_id, user_id)
    if alert.acknowledged:
        raise HTTPException(status_code=400, detail="Alert is already acknowledged")

    alert.acknowledged = True
    alert.acknowledged_at = datetime.utcnow()
    await db.commit()
    await db.refresh(alert)
    return alert


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_alert(
    alert_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    user_id: UUID = Depends(get_user_id),
):
    """Dismiss (delete) an alert."""
    alert = await _get_alert(db, alert_id, user_id)
    await db.delete(alert)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
