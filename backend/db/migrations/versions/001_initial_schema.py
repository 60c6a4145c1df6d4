"""
Initial schema - 8 tables, dedupe index, row-level security

Revision ID: 001
Revises: None
Create Date: 2026-10-05
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TENANT_TABLES = [
    "appliances",
    "temperature_logs",
    "employees",
    "checklists",
    "cleaning_records",
    "alerts",
]


def _id_column(name: str) -> sa.Column:
    return sa.Column(name, UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _tenant_column() -> sa.Column:
    return sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("tenants.user_id"), nullable=False)


def upgrade() -> None:
    # 1. Tenants
    op.create_table(
        "tenants",
        _id_column("user_id"),
        sa.Column("business_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("email_alerts_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 2. Appliances
    op.create_table(
        "appliances",
        _id_column("appliance_id"),
        _tenant_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("location", sa.String(255)),
        sa.Column("min_temp", sa.Float),
        sa.Column("max_temp", sa.Float),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "type IN ('fridge', 'freezer', 'hot_hold', 'dishwasher', 'probe')", name="ck_appliance_type"
        ),
    )
    op.create_index("ix_appliances_user_type", "appliances", ["user_id", "type"])

    # 3. Temperature logs
    op.create_table(
        "temperature_logs",
        _id_column("log_id"),
        _tenant_column(),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column(
            "appliance_id",
            UUID(as_uuid=True),
            sa.ForeignKey("appliances.appliance_id", ondelete="SET NULL"),
        ),
        sa.Column("appliance_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("temperature", sa.Float),
        sa.Column("ice_temp", sa.Float),
        sa.Column("boiling_temp", sa.Float),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("time", sa.String(5), nullable=False),
        sa.Column("logged_by", sa.String(255), nullable=False, server_default=""),
        sa.Column("is_compliant", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "type IN ('fridge', 'freezer', 'hot_hold', 'delivery', 'dishwasher', 'probe_calibration')",
            name="ck_temperature_log_type",
        ),
    )
    op.create_index("ix_temperature_logs_user_date", "temperature_logs", ["user_id", "date"])
    op.create_index("ix_temperature_logs_appliance_date", "temperature_logs", ["appliance_id", "date"])

    # 4. Employees
    op.create_table(
        "employees",
        _id_column("employee_id"),
        _tenant_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="staff"),
        sa.Column("email", sa.String(255)),
        sa.Column("start_date", sa.Date),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('admin', 'manager', 'staff')", name="ck_employee_role"),
    )
    op.create_index("ix_employees_user", "employees", ["user_id"])

    # 5. Certificates (tenant scope via employee)
    op.create_table(
        "certificates",
        _id_column("certificate_id"),
        sa.Column(
            "employee_id",
            UUID(as_uuid=True),
            sa.ForeignKey("employees.employee_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("issue_date", sa.Date),
        sa.Column("expiry_date", sa.Date),
        sa.Column("file_url", sa.Text),
    )
    op.create_index("ix_certificates_employee_expiry", "certificates", ["employee_id", "expiry_date"])

    # 6. Checklists
    op.create_table(
        "checklists",
        _id_column("checklist_id"),
        _tenant_column(),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("items", sa.JSON),
        sa.Column("completed_by", sa.String(255)),
        sa.Column("remarks", sa.Text),
        sa.Column("signed_off", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("type IN ('opening', 'closing', 'weekly')", name="ck_checklist_type"),
    )
    op.create_index("ix_checklists_user_type_date", "checklists", ["user_id", "type", "date"])

    # 7. Cleaning records
    op.create_table(
        "cleaning_records",
        _id_column("record_id"),
        _tenant_column(),
        sa.Column("frequency", sa.String(10), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("tasks", sa.JSON),
        sa.Column("completed_by", sa.String(255)),
        sa.Column("signed_off", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("frequency IN ('daily', 'weekly', 'monthly')", name="ck_cleaning_frequency"),
    )
    op.create_index("ix_cleaning_records_user_freq_date", "cleaning_records", ["user_id", "frequency", "date"])

    # 8. Alerts
    op.create_table(
        "alerts",
        _id_column("alert_id"),
        _tenant_column(),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("related_id", UUID(as_uuid=True)),
        sa.Column("acknowledged", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("dedupe_bucket", sa.DateTime, nullable=False),
        sa.Column("acknowledged_at", sa.DateTime),
        sa.CheckConstraint(
            "type IN ('certificate_expiry', 'temperature', 'overdue_task', 'inspection')", name="ck_alert_type"
        ),
        sa.CheckConstraint("severity IN ('low', 'medium', 'high', 'critical')", name="ck_alert_severity"),
    )
    op.create_index("ix_alerts_user_ack", "alerts", ["user_id", "acknowledged"])
    op.create_index("ix_alerts_dedupe_lookup", "alerts", ["user_id", "type", "title", "created_at"])
    op.create_index(
        "uq_alerts_open_per_bucket",
        "alerts",
        ["user_id", "type", "title", "dedupe_bucket"],
        unique=True,
        postgresql_where=sa.text("acknowledged = false"),
    )

    # Row-level security (the table owner, used by the alert worker, is not subject to it)
    for table in TENANT_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(
            f"CREATE POLICY tenant_isolation ON {table} "
            f"USING (user_id::text = current_setting('app.current_user_id', true))"
        )
    op.execute("ALTER TABLE certificates ENABLE ROW LEVEL SECURITY")
    op.execute(
        "CREATE POLICY tenant_isolation ON certificates USING (employee_id IN ("
        "SELECT employee_id FROM employees "
        "WHERE user_id::text = current_setting('app.current_user_id', true)))"
    )


def downgrade() -> None:
    for table in [*TENANT_TABLES, "certificates"]:
        op.execute(f"DROP POLICY IF EXISTS tenant_isolation ON {table}")
    op.drop_table("alerts")
    op.drop_table("cleaning_records")
    op.drop_table("checklists")
    op.drop_table("certificates")
    op.drop_table("employees")
    op.drop_table("temperature_logs")
    op.drop_table("appliances")
    op.drop_table("tenants")
