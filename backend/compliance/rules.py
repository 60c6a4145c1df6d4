"""
Compliance Rules — threshold and date logic shared by the alert engine and the API.

Pure functions only: no database, no clock. Callers pass `now` explicitly.

Rules:
  - Temperature readings must sit inside a closed [min, max] interval per type
  - Probe calibration needs both the ice and boiling checks in range
  - Certificates are bucketed by days until expiry (critical/high/medium/low)
  - A matching unacknowledged alert inside the dedupe window suppresses a new one
  - "Done today" means at least one signed-off record for the date
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

# ──────────────────────────────────────────────────────────────────────────
# Temperature Thresholds (°C)
# ──────────────────────────────────────────────────────────────────────────

TEMP_THRESHOLDS: dict[str, tuple[float, float]] = {
    "fridge": (0, 5),
    "freezer": (-25, -18),
    "hot_hold": (63, 100),
    "delivery_chilled": (0, 8),
    "delivery_frozen": (-25, -15),
    "dishwasher_wash": (55, 65),
    "dishwasher_rinse": (82, 90),
    "probe_ice": (-1, 1),
    "probe_boiling": (99, 101),
}

# Reading type -> threshold key. Types missing here have no single threshold.
READING_THRESHOLD_KEYS = {
    "fridge": "fridge",
    "freezer": "freezer",
    "hot_hold": "hot_hold",
    "delivery": "delivery_chilled",
}

MONITORED_APPLIANCE_TYPES = ("fridge", "freezer", "hot_hold")

CERTIFICATE_SEVERITY_DAYS = {
    "critical": 0,  # Expired or expires today
    "high": 7,
    "medium": 14,
}


def threshold_for(reading_type: str) -> tuple[float, float] | None:
    """Return the (min, max) interval applied to a reading type, if any."""
    key = READING_THRESHOLD_KEYS.get(reading_type)
    return TEMP_THRESHOLDS[key] if key else None


def _in_range(value: float | None, bounds: tuple[float, float]) -> bool:
    if value is None:
        return False
    low, high = bounds
    return low <= value <= high


def is_temperature_compliant(
    reading_type: str,
    value: float | None = None,
    *,
    ice_temp: float | None = None,
    boiling_temp: float | None = None,
) -> bool:
    """
    Decide whether a reading is inside its safe range.

    Boundaries are compliant. Probe calibration passes only when both the ice
    and boiling checks are present and in range. Types without a threshold
    (dishwasher, custom appliances) are treated as compliant.
    """
    if reading_type == "probe_calibration":
        return _in_range(ice_temp, TEMP_THRESHOLDS["probe_ice"]) and _in_range(
            boiling_temp, TEMP_THRESHOLDS["probe_boiling"]
        )

    bounds = threshold_for(reading_type)
    if bounds is None:
        return True
    return _in_range(value, bounds)


# ──────────────────────────────────────────────────────────────────────────
# Dates & Certificates
# ──────────────────────────────────────────────────────────────────────────


def to_utc_naive(moment: datetime) -> datetime:
    """Normalize to naive UTC, the form timestamps are stored in."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def days_until(date_value: date | str, reference: datetime) -> int:
    """
    Whole days from `reference` until the start (00:00 UTC) of `date_value`,
    rounded up. Negative once the date has passed.
    """
    if isinstance(date_value, str):
        date_value = date.fromisoformat(date_value[:10])
    target = datetime.combine(date_value, time.min)
    delta = target - to_utc_naive(reference)
    return math.ceil(delta.total_seconds() / 86400)


def certificate_severity(days_until_expiry: int) -> str:
    """Classify a certificate alert by days until expiry."""
    if days_until_expiry <= CERTIFICATE_SEVERITY_DAYS["critical"]:
        return "critical"
    elif days_until_expiry <= CERTIFICATE_SEVERITY_DAYS["high"]:
        return "high"
    elif days_until_expiry <= CERTIFICATE_SEVERITY_DAYS["medium"]:
        return "medium"
    return "low"


def is_within_dedupe_window(existing_created_at: datetime, now: datetime, window_hours: int = 24) -> bool:
    """True when an alert created at `existing_created_at` still suppresses duplicates at `now`."""
    created = to_utc_naive(existing_created_at)
    current = to_utc_naive(now)
    return current - timedelta(hours=window_hours) <= created <= current


def dedupe_window_start(now: datetime, window_hours: int = 24) -> datetime:
    return to_utc_naive(now) - timedelta(hours=window_hours)


_EPOCH = datetime(1970, 1, 1)


def dedupe_bucket_start(moment: datetime, window_hours: int = 24) -> datetime:
    """
    Start of the epoch-aligned bucket, one dedupe window wide, containing `moment`.

    Two alerts share a bucket only if they are less than one window apart, so
    a unique key on the bucket never rejects what the rolling window allows.
    """
    width = timedelta(hours=max(1, window_hours))
    elapsed = to_utc_naive(moment) - _EPOCH
    return _EPOCH + (elapsed // width) * width


def is_past_cutoff(now: datetime, cutoff_hour: int) -> bool:
    """Hour-of-day gate for checks that only make sense later in the day."""
    return to_utc_naive(now).hour >= cutoff_hour


# ──────────────────────────────────────────────────────────────────────────
# Checklist / Cleaning Completion
# ──────────────────────────────────────────────────────────────────────────


def has_signed_off(records: Iterable, on_date: date) -> bool:
    """Any record for `on_date` signed off. Duplicate records for a day are fine."""
    return any(r.date == on_date and r.signed_off for r in records)


def week_commencing(day: date) -> date:
    """Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


@dataclass(frozen=True)
class DailyComplianceSummary:
    date: date
    temperature_log_count: int
    non_compliant_count: int
    temperature_compliance_pct: int | None
    opening_complete: bool
    closing_complete: bool
    cleaning_complete: bool
    weekly_cleaning_complete: bool


def summarize_day(
    day: date,
    temperature_logs: Iterable,
    checklists: Iterable,
    cleaning_records: Iterable,
) -> DailyComplianceSummary:
    """Dashboard status for one day."""
    todays_logs = [log for log in temperature_logs if log.date == day]
    compliant = sum(1 for log in todays_logs if log.is_compliant)
    # Halves round up
    pct = math.floor(compliant * 100 / len(todays_logs) + 0.5) if todays_logs else None

    checklists = list(checklists)
    opening = [c for c in checklists if c.type == "opening"]
    closing = [c for c in checklists if c.type == "closing"]

    cleaning_records = list(cleaning_records)
    todays_cleaning = [r for r in cleaning_records if r.date == day]
    monday = week_commencing(day)
    weekly_done = any(
        r.frequency == "weekly" and r.signed_off and monday <= r.date <= day for r in cleaning_records
    )

    return DailyComplianceSummary(
        date=day,
        temperature_log_count=len(todays_logs),
        non_compliant_count=len(todays_logs) - compliant,
        temperature_compliance_pct=pct,
        opening_complete=has_signed_off(opening, day),
        closing_complete=has_signed_off(closing, day),
        cleaning_complete=bool(todays_cleaning) and all(r.signed_off for r in todays_cleaning),
        weekly_cleaning_complete=weekly_done,
    )
