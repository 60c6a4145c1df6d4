"""
Typed records for the compliance engine.

The alert engine and the rule evaluator never see ORM rows; the store adapter
(alerts/store.py) converts rows into these frozen dataclasses at the boundary.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any


@dataclass(frozen=True)
class TenantRecord:
    user_id: uuid.UUID
    business_name: str
    email: str
    email_alerts_enabled: bool = False


@dataclass(frozen=True)
class ApplianceRecord:
    appliance_id: uuid.UUID
    name: str
    type: str
    location: str | None = None
    min_temp: float | None = None
    max_temp: float | None = None


@dataclass(frozen=True)
class TemperatureLogRecord:
    log_id: uuid.UUID
    type: str
    appliance_name: str
    date: date
    time: str
    is_compliant: bool
    appliance_id: uuid.UUID | None = None
    temperature: float | None = None
    ice_temp: float | None = None
    boiling_temp: float | None = None
    logged_by: str = ""


@dataclass(frozen=True)
class CertificateRecord:
    certificate_id: uuid.UUID
    name: str
    issue_date: date | None
    expiry_date: date | None


@dataclass(frozen=True)
class EmployeeRecord:
    employee_id: uuid.UUID
    name: str
    role: str
    certificates: tuple[CertificateRecord, ...] = ()


@dataclass(frozen=True)
class ChecklistRecord:
    checklist_id: uuid.UUID
    type: str
    date: date
    signed_off: bool
    items: tuple[dict[str, Any], ...] = ()
    completed_by: str | None = None


@dataclass(frozen=True)
class CleaningRecordRecord:
    record_id: uuid.UUID
    frequency: str
    date: date
    signed_off: bool
    tasks: tuple[dict[str, Any], ...] = ()
    completed_by: str | None = None


@dataclass(frozen=True)
class AlertCandidate:
    """An alert a check routine wants raised; persisted only if not a duplicate."""

    user_id: uuid.UUID
    type: str
    severity: str
    title: str
    message: str
    related_id: uuid.UUID | None = None

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        return (str(self.user_id), self.type, self.title)


@dataclass(frozen=True)
class AlertRecord:
    alert_id: uuid.UUID
    user_id: uuid.UUID
    type: str
    severity: str
    title: str
    message: str
    created_at: datetime
    acknowledged: bool = False
    related_id: uuid.UUID | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "alert_id": str(self.alert_id),
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "message": self.message,
            "related_id": str(self.related_id) if self.related_id else None,
            "created_at": self.created_at.isoformat(),
        }
