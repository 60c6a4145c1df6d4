"""
Alert Store — the engine's view of the database.

The engine talks to an `AlertStore`; `SqlAlchemyAlertStore` is the production
implementation. Every method opens its own short-lived session so check
routines for one tenant can run concurrently without sharing a session.
ORM rows are converted to typed records here and nowhere else.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import date, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from compliance.records import (
    AlertCandidate,
    AlertRecord,
    ApplianceRecord,
    CertificateRecord,
    ChecklistRecord,
    CleaningRecordRecord,
    EmployeeRecord,
    TemperatureLogRecord,
    TenantRecord,
)
from compliance.rules import dedupe_bucket_start
from db.models import Alert, Appliance, Checklist, CleaningRecord, Employee, TemperatureLog, Tenant


class DuplicateAlertError(Exception):
    """Insert rejected by the storage-level (tenant, type, title, window bucket) guard."""


class AlertStore(Protocol):
    async def list_tenant_ids(self) -> list[uuid.UUID]: ...

    async def get_tenant(self, user_id: uuid.UUID) -> TenantRecord | None: ...

    async def list_employees_with_certificates(
        self, user_id: uuid.UUID, *, expiring_on_or_before: date | None = None
    ) -> list[EmployeeRecord]: ...

    async def find_checklists(
        self, user_id: uuid.UUID, *, type: str, on_date: date, signed_off: bool | None = None
    ) -> list[ChecklistRecord]: ...

    async def find_cleaning_records(
        self, user_id: uuid.UUID, *, frequency: str, on_date: date, signed_off: bool | None = None
    ) -> list[CleaningRecordRecord]: ...

    async def find_temperature_logs(
        self,
        user_id: uuid.UUID,
        *,
        on_date: date,
        appliance_id: uuid.UUID | None = None,
        is_compliant: bool | None = None,
    ) -> list[TemperatureLogRecord]: ...

    async def list_appliances(self, user_id: uuid.UUID, types: Sequence[str]) -> list[ApplianceRecord]: ...

    async def find_open_alerts(
        self, user_id: uuid.UUID, *, type: str, title: str, since: datetime
    ) -> list[AlertRecord]: ...

    async def insert_alert(
        self, candidate: AlertCandidate, created_at: datetime, *, dedupe_window_hours: int = 24
    ) -> AlertRecord: ...


# ──────────────────────────────────────────────────────────────────────────
# Row -> record conversion
# ──────────────────────────────────────────────────────────────────────────


def tenant_record(row: Tenant) -> TenantRecord:
    return TenantRecord(
        user_id=row.user_id,
        business_name=row.business_name or "",
        email=row.email,
        email_alerts_enabled=bool(row.email_alerts_enabled),
    )


def alert_record(row: Alert) -> AlertRecord:
    return AlertRecord(
        alert_id=row.alert_id,
        user_id=row.user_id,
        type=row.type,
        severity=row.severity,
        title=row.title,
        message=row.message,
        created_at=row.created_at,
        acknowledged=bool(row.acknowledged),
        related_id=row.related_id,
    )


def temperature_log_record(row: TemperatureLog) -> TemperatureLogRecord:
    return TemperatureLogRecord(
        log_id=row.log_id,
        type=row.type,
        appliance_id=row.appliance_id,
        appliance_name=row.appliance_name or "",
        temperature=row.temperature,
        ice_temp=row.ice_temp,
        boiling_temp=row.boiling_temp,
        date=row.date,
        time=row.time,
        logged_by=row.logged_by or "",
        is_compliant=bool(row.is_compliant),
    )


def checklist_record(row: Checklist) -> ChecklistRecord:
    return ChecklistRecord(
        checklist_id=row.checklist_id,
        type=row.type,
        date=row.date,
        signed_off=bool(row.signed_off),
        items=tuple(row.items or ()),
        completed_by=row.completed_by,
    )


def cleaning_record(row: CleaningRecord) -> CleaningRecordRecord:
    return CleaningRecordRecord(
        record_id=row.record_id,
        frequency=row.frequency,
        date=row.date,
        signed_off=bool(row.signed_off),
        tasks=tuple(row.tasks or ()),
        completed_by=row.completed_by,
    )


# ──────────────────────────────────────────────────────────────────────────
# SQLAlchemy implementation
# ──────────────────────────────────────────────────────────────────────────


class SqlAlchemyAlertStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_tenant_ids(self) -> list[uuid.UUID]:
        async with self._session_factory() as db:
            result = await db.execute(select(Tenant.user_id).order_by(Tenant.created_at))
            return [row.user_id for row in result.all()]

    async def get_tenant(self, user_id: uuid.UUID) -> TenantRecord | None:
        async with self._session_factory() as db:
            row = await db.get(Tenant, user_id)
            return tenant_record(row) if row else None

    async def list_employees_with_certificates(
        self, user_id: uuid.UUID, *, expiring_on_or_before: date | None = None
    ) -> list[EmployeeRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Employee)
                .where(Employee.user_id == user_id)
                .options(selectinload(Employee.certificates))
                .order_by(Employee.name)
            )
            employees = []
            for emp in result.scalars().all():
                certs = [
                    CertificateRecord(
                        certificate_id=c.certificate_id,
                        name=c.name,
                        issue_date=c.issue_date,
                        expiry_date=c.expiry_date,
                    )
                    for c in emp.certificates
                    if expiring_on_or_before is None
                    or (c.expiry_date is not None and c.expiry_date <= expiring_on_or_before)
                ]
                employees.append(
                    EmployeeRecord(
                        employee_id=emp.employee_id,
                        name=emp.name,
                        role=emp.role,
                        certificates=tuple(certs),
                    )
                )
            return employees

    async def find_checklists(
        self, user_id: uuid.UUID, *, type: str, on_date: date, signed_off: bool | None = None
    ) -> list[ChecklistRecord]:
        query = select(Checklist).where(
            Checklist.user_id == user_id,
            Checklist.type == type,
            Checklist.date == on_date,
        )
        if signed_off is not None:
            query = query.where(Checklist.signed_off == signed_off)
        async with self._session_factory() as db:
            result = await db.execute(query)
            return [checklist_record(row) for row in result.scalars().all()]

    async def find_cleaning_records(
        self, user_id: uuid.UUID, *, frequency: str, on_date: date, signed_off: bool | None = None
    ) -> list[CleaningRecordRecord]:
        query = select(CleaningRecord).where(
            CleaningRecord.user_id == user_id,
            CleaningRecord.frequency == frequency,
            CleaningRecord.date == on_date,
        )
        if signed_off is not None:
            query = query.where(CleaningRecord.signed_off == signed_off)
        async with self._session_factory() as db:
            result = await db.execute(query)
            return [cleaning_record(row) for row in result.scalars().all()]

    async def find_temperature_logs(
        self,
        user_id: uuid.UUID,
        *,
        on_date: date,
        appliance_id: uuid.UUID | None = None,
        is_compliant: bool | None = None,
    ) -> list[TemperatureLogRecord]:
        query = select(TemperatureLog).where(
            TemperatureLog.user_id == user_id,
            TemperatureLog.date == on_date,
        )
        if appliance_id is not None:
            query = query.where(TemperatureLog.appliance_id == appliance_id)
        if is_compliant is not None:
            query = query.where(TemperatureLog.is_compliant == is_compliant)
        query = query.order_by(TemperatureLog.time)
        async with self._session_factory() as db:
            result = await db.execute(query)
            return [temperature_log_record(row) for row in result.scalars().all()]

    async def list_appliances(self, user_id: uuid.UUID, types: Sequence[str]) -> list[ApplianceRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Appliance)
                .where(Appliance.user_id == user_id, Appliance.type.in_(list(types)))
                .order_by(Appliance.name)
            )
            return [
                ApplianceRecord(
                    appliance_id=row.appliance_id,
                    name=row.name,
                    type=row.type,
                    location=row.location,
                    min_temp=row.min_temp,
                    max_temp=row.max_temp,
                )
                for row in result.scalars().all()
            ]

    async def find_open_alerts(
        self, user_id: uuid.UUID, *, type: str, title: str, since: datetime
    ) -> list[AlertRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Alert).where(
                    Alert.user_id == user_id,
                    Alert.type == type,
                    Alert.title == title,
                    Alert.acknowledged.is_(False),
                    Alert.created_at >= since,
                )
            )
            return [alert_record(row) for row in result.scalars().all()]

    async def insert_alert(
        self, candidate: AlertCandidate, created_at: datetime, *, dedupe_window_hours: int = 24
    ) -> AlertRecord:
        alert = Alert(
            user_id=candidate.user_id,
            type=candidate.type,
            severity=candidate.severity,
            title=candidate.title,
            message=candidate.message,
            related_id=candidate.related_id,
            acknowledged=False,
            created_at=created_at,
            dedupe_bucket=dedupe_bucket_start(created_at, dedupe_window_hours),
        )
        async with self._session_factory() as db:
            db.add(alert)
            try:
                await db.flush()
                record = alert_record(alert)
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                if _is_dedupe_violation(exc):
                    raise DuplicateAlertError(candidate.title) from exc
                raise
            return record


def _is_dedupe_violation(exc: IntegrityError) -> bool:
    detail = str(exc.orig)
    # PostgreSQL names the index; SQLite lists the columns
    return "uq_alerts_open_per_bucket" in detail or "UNIQUE constraint failed: alerts." in detail
