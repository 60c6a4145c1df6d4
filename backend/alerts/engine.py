"""
Alert Engine — Compliance checks, alert deduplication, and the scheduled pass.

Patterns used: Rule-based detection, time-windowed deduplication,
bounded per-tenant concurrency with failure isolation

Check routines (each returns candidate alerts for one tenant):
  - check_expiring_certificates: certificates expired or expiring within the lookahead
  - check_missing_opening_checklist: today's opening checklist not signed off
  - check_missing_closing_checklist: yesterday's closing checklist not signed off
  - check_missing_daily_cleaning: today's daily cleaning not signed off
  - check_non_compliant_temperatures: out-of-range readings logged today
  - check_missing_temperature_logs: monitored appliances with no reading today

A candidate becomes an alert only when no unacknowledged alert with the same
(tenant, type, title) was raised inside the dedupe window.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from alerts.store import AlertStore, DuplicateAlertError
from compliance.records import AlertCandidate, AlertRecord, TemperatureLogRecord
from compliance.rules import (
    MONITORED_APPLIANCE_TYPES,
    certificate_severity,
    days_until,
    dedupe_window_start,
    has_signed_off,
    is_past_cutoff,
    to_utc_naive,
)

logger = structlog.get_logger()


class TenantEnumerationError(RuntimeError):
    """The pass could not list tenants; nothing was evaluated."""


@dataclass(frozen=True)
class AlertRules:
    dedupe_window_hours: int = 24
    certificate_lookahead_days: int = 30
    opening_checklist_cutoff_hour: int = 11
    closing_checklist_cutoff_hour: int = 9
    cleaning_cutoff_hour: int = 18
    temperature_log_cutoff_hour: int = 14
    max_concurrency: int = 4
    tenant_timeout_seconds: float | None = 60.0

    @classmethod
    def from_settings(cls, settings=None) -> AlertRules:
        if settings is None:
            from core.config import get_settings

            settings = get_settings()
        return cls(
            dedupe_window_hours=settings.alert_dedupe_window_hours,
            certificate_lookahead_days=settings.alert_certificate_lookahead_days,
            opening_checklist_cutoff_hour=settings.alert_opening_checklist_cutoff_hour,
            closing_checklist_cutoff_hour=settings.alert_closing_checklist_cutoff_hour,
            cleaning_cutoff_hour=settings.alert_cleaning_cutoff_hour,
            temperature_log_cutoff_hour=settings.alert_temperature_log_cutoff_hour,
            max_concurrency=settings.alert_max_concurrency,
            tenant_timeout_seconds=settings.alert_tenant_timeout_seconds,
        )


READING_LABELS = {
    "fridge": "Fridge",
    "freezer": "Freezer",
    "hot_hold": "Hot Hold",
    "delivery": "Delivery",
    "dishwasher": "Dishwasher",
    "probe_calibration": "Probe Calibration",
}


# ──────────────────────────────────────────────────────────────────────────
# Certificate Expiry
# ──────────────────────────────────────────────────────────────────────────


async def check_expiring_certificates(
    store: AlertStore,
    user_id: uuid.UUID,
    now: datetime,
    rules: AlertRules,
) -> list[AlertCandidate]:
    """
    Certificates with an expiry date inside the lookahead, including ones
    already expired. Certificates without an expiry date never alert.
    """
    horizon = now.date() + timedelta(days=rules.certificate_lookahead_days)
    employees = await store.list_employees_with_certificates(user_id, expiring_on_or_before=horizon)

    alerts = []
    for employee in employees:
        for cert in employee.certificates:
            if cert.expiry_date is None:
                continue
            days = days_until(cert.expiry_date, now)
            if days > rules.certificate_lookahead_days:
                continue

            expiry = cert.expiry_date.isoformat()
            if days <= 0:
                title = f"{cert.name} certificate expired"
                message = (
                    f"{employee.name}'s {cert.name} certificate expired on {expiry}. "
                    "Please renew immediately."
                )
            else:
                title = f"{cert.name} certificate expiring soon"
                message = f"{employee.name}'s {cert.name} certificate expires in {days} days ({expiry})."

            alerts.append(
                AlertCandidate(
                    user_id=user_id,
                    type="certificate_expiry",
                    severity=certificate_severity(days),
                    title=title,
                    message=message,
                    related_id=cert.certificate_id,
                )
            )

    return alerts


# ──────────────────────────────────────────────────────────────────────────
# Checklists & Cleaning
# ──────────────────────────────────────────────────────────────────────────


async def check_missing_opening_checklist(
    store: AlertStore,
    user_id: uuid.UUID,
    now: datetime,
    rules: AlertRules,
) -> list[AlertCandidate]:
    if not is_past_cutoff(now, rules.opening_checklist_cutoff_hour):
        return []

    today = now.date()
    checklists = await store.find_checklists(user_id, type="opening", on_date=today, signed_off=True)
    if has_signed_off(checklists, today):
        return []

    return [
        AlertCandidate(
            user_id=user_id,
            type="overdue_task",
            severity="high",
            title="Opening checklist not completed",
            message=(
                f"The opening checklist for {today.isoformat()} has not been signed off. "
                "Please complete it as soon as possible."
            ),
        )
    ]


async def check_missing_closing_checklist(
    store: AlertStore,
    user_id: uuid.UUID,
    now: datetime,
    rules: AlertRules,
) -> list[AlertCandidate]:
    """Evaluated the morning after: looks at yesterday's closing checklist."""
    if not is_past_cutoff(now, rules.closing_checklist_cutoff_hour):
        return []

    yesterday = now.date() - timedelta(days=1)
    checklists = await store.find_checklists(user_id, type="closing", on_date=yesterday, signed_off=True)
    if has_signed_off(checklists, yesterday):
        return []

    return [
        AlertCandidate(
            user_id=user_id,
            type="overdue_task",
            severity="medium",
            title="Closing checklist not completed",
            message=(
                f"The closing checklist for {yesterday.isoformat()} was not signed off. "
                "Please review and complete it."
            ),
        )
    ]


async def check_missing_daily_cleaning(
    store: AlertStore,
    user_id: uuid.UUID,
    now: datetime,
    rules: AlertRules,
) -> list[AlertCandidate]:
    if not is_past_cutoff(now, rules.cleaning_cutoff_hour):
        return []

    today = now.date()
    records = await store.find_cleaning_records(user_id, frequency="daily", on_date=today, signed_off=True)
    if has_signed_off(records, today):
        return []

    return [
        AlertCandidate(
            user_id=user_id,
            type="overdue_task",
            severity="medium",
            title="Daily cleaning not completed",
            message=(
                f"The daily cleaning tasks for {today.isoformat()} have not been signed off. "
                "Please complete before end of day."
            ),
        )
    ]


# ──────────────────────────────────────────────────────────────────────────
# Temperatures
# ──────────────────────────────────────────────────────────────────────────


def _describe_reading(log: TemperatureLogRecord) -> str:
    if log.type == "probe_calibration":
        ice = "n/a" if log.ice_temp is None else f"{log.ice_temp:g}°C"
        boiling = "n/a" if log.boiling_temp is None else f"{log.boiling_temp:g}°C"
        return f"ice {ice} / boiling {boiling}"
    if log.temperature is None:
        return "no temperature"
    return f"{log.temperature:g}°C"


async def check_non_compliant_temperatures(
    store: AlertStore,
    user_id: uuid.UUID,
    now: datetime,
    rules: AlertRules,
) -> list[AlertCandidate]:
    """
    One critical alert per out-of-range reading logged today.

    Trusts the is_compliant flag written at entry time; readings are not
    re-evaluated against current thresholds.
    """
    today = now.date()
    logs = await store.find_temperature_logs(user_id, on_date=today, is_compliant=False)

    alerts = []
    for log in logs:
        if log.is_compliant:
            continue
        name = log.appliance_name or READING_LABELS.get(log.type, log.type)
        alerts.append(
            AlertCandidate(
                user_id=user_id,
                type="temperature",
                severity="critical",
                title=f"Temperature out of range: {name}",
                message=(
                    f"{name} recorded {_describe_reading(log)} at {log.time} on {log.date.isoformat()}. "
                    "This is outside the safe range. Corrective action may be required."
                ),
                related_id=log.log_id,
            )
        )
    return alerts


async def check_missing_temperature_logs(
    store: AlertStore,
    user_id: uuid.UUID,
    now: datetime,
    rules: AlertRules,
) -> list[AlertCandidate]:
    if not is_past_cutoff(now, rules.temperature_log_cutoff_hour):
        return []

    today = now.date()
    appliances = await store.list_appliances(user_id, MONITORED_APPLIANCE_TYPES)

    alerts = []
    for appliance in appliances:
        logs = await store.find_temperature_logs(user_id, on_date=today, appliance_id=appliance.appliance_id)
        if logs:
            continue
        alerts.append(
            AlertCandidate(
                user_id=user_id,
                type="overdue_task",
                severity="high",
                title=f"No temperature log for {appliance.name}",
                message=(
                    f"No temperature has been recorded for {appliance.name} today ({today.isoformat()}). "
                    "Temperature checks should be done at least twice daily."
                ),
                related_id=appliance.appliance_id,
            )
        )
    return alerts


CheckRoutine = Callable[[AlertStore, uuid.UUID, datetime, AlertRules], Awaitable[list[AlertCandidate]]]

CHECK_ROUTINES: tuple[tuple[str, CheckRoutine], ...] = (
    ("certificates", check_expiring_certificates),
    ("opening_checklist", check_missing_opening_checklist),
    ("closing_checklist", check_missing_closing_checklist),
    ("daily_cleaning", check_missing_daily_cleaning),
    ("non_compliant_temperatures", check_non_compliant_temperatures),
    ("missing_temperature_logs", check_missing_temperature_logs),
)


# ──────────────────────────────────────────────────────────────────────────
# Candidate Generation
# ──────────────────────────────────────────────────────────────────────────


@dataclass
class TenantAlertResult:
    user_id: uuid.UUID
    candidates: int = 0
    created: list[AlertRecord] = field(default_factory=list)
    duplicates: int = 0
    dropped: int = 0
    failed_routines: list[str] = field(default_factory=list)


async def generate_candidates(
    store: AlertStore,
    user_id: uuid.UUID,
    now: datetime,
    rules: AlertRules,
    routines: tuple[tuple[str, CheckRoutine], ...] = CHECK_ROUTINES,
) -> tuple[list[AlertCandidate], list[str]]:
    """
    Run every check routine for one tenant concurrently.

    A routine that raises contributes no candidates; the others still count.
    Returns (candidates, names of failed routines).
    """
    results = await asyncio.gather(
        *(routine(store, user_id, now, rules) for _, routine in routines),
        return_exceptions=True,
    )

    candidates: list[AlertCandidate] = []
    failed: list[str] = []
    for (name, _), result in zip(routines, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            failed.append(name)
            logger.error(
                "alerts.routine.failed",
                user_id=str(user_id),
                routine=name,
                error=str(result),
                exc_info=result,
            )
            continue
        candidates.extend(result)
    return candidates, failed


# ──────────────────────────────────────────────────────────────────────────
# Deduplication + Persistence
# ──────────────────────────────────────────────────────────────────────────


async def is_duplicate(
    store: AlertStore,
    candidate: AlertCandidate,
    now: datetime,
    rules: AlertRules,
) -> bool:
    """An unacknowledged alert with the same (tenant, type, title) exists inside the window."""
    existing = await store.find_open_alerts(
        candidate.user_id,
        type=candidate.type,
        title=candidate.title,
        since=dedupe_window_start(now, rules.dedupe_window_hours),
    )
    return bool(existing)


async def persist_candidates(
    store: AlertStore,
    user_id: uuid.UUID,
    candidates: list[AlertCandidate],
    now: datetime,
    rules: AlertRules,
) -> TenantAlertResult:
    """
    Check-then-insert each candidate in order. Must not run concurrently for
    the same tenant; the unique index on alerts backs this up.
    """
    result = TenantAlertResult(user_id=user_id, candidates=len(candidates))
    for candidate in candidates:
        try:
            if await is_duplicate(store, candidate, now, rules):
                result.duplicates += 1
                continue
            created = await store.insert_alert(
                candidate, now, dedupe_window_hours=rules.dedupe_window_hours
            )
        except DuplicateAlertError:
            result.duplicates += 1
            logger.info("alerts.insert.duplicate", user_id=str(user_id), title=candidate.title)
            continue
        except Exception as exc:  # noqa: BLE001
            result.dropped += 1
            logger.error(
                "alerts.insert.failed",
                user_id=str(user_id),
                alert_type=candidate.type,
                title=candidate.title,
                error=str(exc),
                exc_info=True,
            )
            continue
        result.created.append(created)
    return result


async def process_tenant(
    store: AlertStore,
    user_id: uuid.UUID,
    now: datetime,
    rules: AlertRules,
) -> TenantAlertResult:
    """
    Generate, deduplicate and persist alerts for one tenant.

    tenant_timeout_seconds bounds candidate generation only. Persistence is
    never cancelled part-way, so every stored alert is reported.
    """
    candidates, failed = await asyncio.wait_for(
        generate_candidates(store, user_id, now, rules),
        timeout=rules.tenant_timeout_seconds,
    )
    result = await persist_candidates(store, user_id, candidates, now, rules)
    result.failed_routines = failed
    logger.info(
        "alerts.tenant.completed",
        user_id=str(user_id),
        candidates=result.candidates,
        created=len(result.created),
        duplicates=result.duplicates,
        dropped=result.dropped,
        failed_routines=failed,
    )
    return result


# ──────────────────────────────────────────────────────────────────────────
# Master Alert Pass (run periodically)
# ──────────────────────────────────────────────────────────────────────────


@dataclass
class AlertPassResult:
    alerts_created: int = 0
    tenants_processed: int = 0
    tenants_failed: int = 0
    created: list[AlertRecord] = field(default_factory=list)

    def as_dict(self) -> dict[str, int]:
        return {
            "alertsCreated": self.alerts_created,
            "tenantsProcessed": self.tenants_processed,
            "tenantsFailed": self.tenants_failed,
        }


async def run_alert_pass(
    store: AlertStore,
    now: datetime,
    rules: AlertRules | None = None,
) -> AlertPassResult:
    """
    One full pass over every tenant:
    1. List tenants (failure here aborts the pass)
    2. Per tenant, bounded by max_concurrency: run checks, dedupe, persist
    3. Aggregate counts

    A tenant that raises, or whose checks exceed tenant_timeout_seconds, is
    logged and skipped. Safe to re-run: a second pass over unchanged data creates nothing.
    """
    rules = rules or AlertRules()
    now = to_utc_naive(now)

    try:
        tenant_ids = await store.list_tenant_ids()
    except Exception as exc:
        logger.error("alerts.pass.tenants_unavailable", error=str(exc), exc_info=True)
        raise TenantEnumerationError(str(exc)) from exc

    logger.info("alerts.pass.started", tenants=len(tenant_ids), now=now.isoformat())
    semaphore = asyncio.Semaphore(max(1, rules.max_concurrency))

    async def _run_tenant(user_id: uuid.UUID) -> TenantAlertResult | None:
        async with semaphore:
            try:
                return await process_tenant(store, user_id, now, rules)
            except asyncio.TimeoutError:
                logger.error(
                    "alerts.tenant.timeout",
                    user_id=str(user_id),
                    timeout_seconds=rules.tenant_timeout_seconds,
                )
            except Exception as exc:  # noqa: BLE001
                logger.error("alerts.tenant.failed", user_id=str(user_id), error=str(exc), exc_info=True)
            return None

    tenant_results = await asyncio.gather(*(_run_tenant(user_id) for user_id in tenant_ids))

    summary = AlertPassResult(tenants_processed=len(tenant_ids))
    for tenant_result in tenant_results:
        if tenant_result is None:
            summary.tenants_failed += 1
            continue
        summary.created.extend(tenant_result.created)
    summary.alerts_created = len(summary.created)

    logger.info("alerts.pass.completed", **summary.as_dict())
    return summary
