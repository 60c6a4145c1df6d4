"""
SFBB Database Models

8 tables for the food-safety compliance tracker.
Multi-tenant via user_id on all tables (certificates inherit it through
their employee).

Tables:
  1. tenants            - Business accounts (one per signed-up user)
  2. appliances         - Monitored equipment (fridges, freezers, hot-hold...)
  3. temperature_logs   - Individual temperature readings
  4. employees          - Staff members
  5. certificates       - Staff training/hygiene certificates
  6. checklists         - Dated opening/closing/weekly checklists
  7. cleaning_records   - Dated daily/weekly/monthly cleaning sign-offs
  8. alerts             - Engine-derived compliance alerts
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    TypeDecorator,
    text,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship

from db.session import Base


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


APPLIANCE_TYPES = ("fridge", "freezer", "hot_hold", "dishwasher", "probe")
TEMPERATURE_LOG_TYPES = ("fridge", "freezer", "hot_hold", "delivery", "dishwasher", "probe_calibration")
ALERT_TYPES = ("certificate_expiry", "temperature", "overdue_task", "inspection")
ALERT_SEVERITIES = ("low", "medium", "high", "critical")


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# ─── 1. Tenants ────────────────────────────────────────────────────────────


class Tenant(Base):
    __tablename__ = "tenants"

    user_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    business_name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False, unique=True)
    email_alerts_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    appliances = relationship("Appliance", back_populates="tenant", cascade="all, delete-orphan")
    employees = relationship("Employee", back_populates="tenant", cascade="all, delete-orphan")


# ─── 2. Appliances ─────────────────────────────────────────────────────────


class Appliance(Base):
    __tablename__ = "appliances"

    appliance_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("tenants.user_id"), nullable=False)
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)
    location = Column(String(255))
    min_temp = Column(Float)
    max_temp = Column(Float)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_appliances_user_type", "user_id", "type"),
        CheckConstraint(_in_list("type", APPLIANCE_TYPES), name="ck_appliance_type"),
    )

    tenant = relationship("Tenant", back_populates="appliances")


# ─── 3. Temperature Logs ───────────────────────────────────────────────────


class TemperatureLog(Base):
    __tablename__ = "temperature_logs"

    log_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("tenants.user_id"), nullable=False)
    type = Column(String(20), nullable=False)
    appliance_id = Column(GUID(), ForeignKey("appliances.appliance_id", ondelete="SET NULL"))
    appliance_name = Column(String(255), nullable=False, default="")
    temperature = Column(Float)
    ice_temp = Column(Float)
    boiling_temp = Column(Float)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    logged_by = Column(String(255), nullable=False, default="")
    is_compliant = Column(Boolean, nullable=False, default=True)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_temperature_logs_user_date", "user_id", "date"),
        Index("ix_temperature_logs_appliance_date", "appliance_id", "date"),
        CheckConstraint(_in_list("type", TEMPERATURE_LOG_TYPES), name="ck_temperature_log_type"),
    )


# ─── 4. Employees ──────────────────────────────────────────────────────────


class Employee(Base):
    __tablename__ = "employees"

    employee_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("tenants.user_id"), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="staff")
    email = Column(String(255))
    start_date = Column(Date)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_employees_user", "user_id"),
        CheckConstraint("role IN ('admin', 'manager', 'staff')", name="ck_employee_role"),
    )

    tenant = relationship("Tenant", back_populates="employees")
    certificates = relationship("Certificate", back_populates="employee", cascade="all, delete-orphan")


# ─── 5. Certificates ───────────────────────────────────────────────────────


class Certificate(Base):
    __tablename__ = "certificates"

    certificate_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    employee_id = Column(GUID(), ForeignKey("employees.employee_id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    issue_date = Column(Date)
    expiry_date = Column(Date)  # NULL = never expires
    file_url = Column(Text)

    __table_args__ = (Index("ix_certificates_employee_expiry", "employee_id", "expiry_date"),)

    employee = relationship("Employee", back_populates="certificates")


# ─── 6. Checklists ─────────────────────────────────────────────────────────


class Checklist(Base):
    __tablename__ = "checklists"

    checklist_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("tenants.user_id"), nullable=False)
    type = Column(String(20), nullable=False)
    date = Column(Date, nullable=False)
    items = Column(JSON, default=list)
    completed_by = Column(String(255))
    remarks = Column(Text)
    signed_off = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # No uniqueness on (user_id, type, date): duplicates are tolerated by readers.
    __table_args__ = (
        Index("ix_checklists_user_type_date", "user_id", "type", "date"),
        CheckConstraint("type IN ('opening', 'closing', 'weekly')", name="ck_checklist_type"),
    )


# ─── 7. Cleaning Records ───────────────────────────────────────────────────


class CleaningRecord(Base):
    __tablename__ = "cleaning_records"

    record_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("tenants.user_id"), nullable=False)
    frequency = Column(String(10), nullable=False)
    date = Column(Date, nullable=False)
    tasks = Column(JSON, default=list)
    completed_by = Column(String(255))
    signed_off = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_cleaning_records_user_freq_date", "user_id", "frequency", "date"),
        CheckConstraint("frequency IN ('daily', 'weekly', 'monthly')", name="ck_cleaning_frequency"),
    )


# ─── 8. Alerts ─────────────────────────────────────────────────────────────


class Alert(Base):
    __tablename__ = "alerts"

    alert_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("tenants.user_id"), nullable=False)
    type = Column(String(30), nullable=False)
    severity = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(GUID())
    acknowledged = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    # Start of the dedupe-window-wide bucket the alert was raised in (UTC)
    dedupe_bucket = Column(DateTime, nullable=False)
    acknowledged_at = Column(DateTime)

    __table_args__ = (
        Index("ix_alerts_user_ack", "user_id", "acknowledged"),
        Index("ix_alerts_dedupe_lookup", "user_id", "type", "title", "created_at"),
        Index(
            "uq_alerts_open_per_bucket",
            "user_id",
            "type",
            "title",
            "dedupe_bucket",
            unique=True,
            postgresql_where=text("acknowledged = false"),
            sqlite_where=text("acknowledged = 0"),
        ),
        CheckConstraint(_in_list("type", ALERT_TYPES), name="ck_alert_type"),
        CheckConstraint(_in_list("severity", ALERT_SEVERITIES), name="ck_alert_severity"),
    )
