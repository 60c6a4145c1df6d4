"""
Test Configuration — Fixtures for async DB, test client, alert stores and mock data.

Each test gets its own SQLite file so sessions opened by the alert store and
the API client see the same committed data.
"""

import uuid
from dataclasses import replace
from datetime import date, datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.store import DuplicateAlertError, SqlAlchemyAlertStore
from api.deps import get_current_user, get_db, get_tenant_db
from api.main import app
from compliance.records import AlertRecord
from compliance.rules import dedupe_bucket_start
from db.session import Base, build_engine, build_session_factory

USER_ID = "00000000-0000-0000-0000-000000000001"
OTHER_USER_ID = "00000000-0000-0000-0000-000000000002"

# Monday, after every cutoff except the evening cleaning one
NOW = datetime(2026, 3, 2, 12, 0)


@pytest.fixture
async def test_engine(tmp_path):
    """Create a per-test database engine and build all tables."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def sql_store(session_factory):
    return SqlAlchemyAlertStore(session_factory)


@pytest.fixture
def mock_user():
    """Mock authenticated user."""
    return {
        "sub": USER_ID,
        "email": "owner@thegreasyspoon.co.uk",
        "user_id": USER_ID,
    }


@pytest.fixture
async def client(test_db, mock_user):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    def override_get_current_user():
        return mock_user

    async def override_get_tenant_db():
        """Skip set_config (SQLite doesn't support it), return session directly."""
        return test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_tenant_db] = override_get_tenant_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(test_db: AsyncSession):
    """Seed the test DB with two tenants and one monitored fridge for the first."""
    from db.models import Appliance, Tenant

    user_id = uuid.UUID(USER_ID)
    other_user_id = uuid.UUID(OTHER_USER_ID)

    tenant = Tenant(
        user_id=user_id,
        business_name="The Greasy Spoon",
        email="owner@thegreasyspoon.co.uk",
        email_alerts_enabled=True,
    )
    other = Tenant(
        user_id=other_user_id,
        business_name="Corner Bakery",
        email="hello@cornerbakery.co.uk",
        created_at=datetime(2026, 1, 2),
    )
    test_db.add_all([tenant, other])
    await test_db.flush()

    fridge = Appliance(user_id=user_id, name="Walk-in Fridge", type="fridge", location="Kitchen")
    test_db.add(fridge)
    await test_db.commit()

    return {
        "user_id": user_id,
        "other_user_id": other_user_id,
        "tenant": tenant,
        "fridge": fridge,
    }


# ──────────────────────────────────────────────────────────────────────────
# In-memory store
# ──────────────────────────────────────────────────────────────────────────


class InMemoryAlertStore:
    """AlertStore over plain lists of typed records, for engine unit tests."""

    def __init__(self):
        self.tenants = []
        self.employees = {}
        self.checklists = {}
        self.cleaning_records = {}
        self.temperature_logs = {}
        self.appliances = {}
        self.alerts: list[AlertRecord] = []

    def add_tenant(self, user_id):
        self.tenants.append(user_id)
        for bucket in (self.employees, self.checklists, self.cleaning_records, self.temperature_logs, self.appliances):
            bucket.setdefault(user_id, [])

    async def list_tenant_ids(self):
        return list(self.tenants)

    async def get_tenant(self, user_id):
        return None

    async def list_employees_with_certificates(self, user_id, *, expiring_on_or_before: date | None = None):
        employees = []
        for emp in self.employees[user_id]:
            certs = tuple(
                c
                for c in emp.certificates
                if expiring_on_or_before is None
                or (c.expiry_date is not None and c.expiry_date <= expiring_on_or_before)
            )
            employees.append(replace(emp, certificates=certs))
        return employees

    async def find_checklists(self, user_id, *, type, on_date, signed_off=None):
        return [
            c
            for c in self.checklists[user_id]
            if c.type == type and c.date == on_date and (signed_off is None or c.signed_off == signed_off)
        ]

    async def find_cleaning_records(self, user_id, *, frequency, on_date, signed_off=None):
        return [
            r
            for r in self.cleaning_records[user_id]
            if r.frequency == frequency and r.date == on_date and (signed_off is None or r.signed_off == signed_off)
        ]

    async def find_temperature_logs(self, user_id, *, on_date, appliance_id=None, is_compliant=None):
        return [
            log
            for log in self.temperature_logs[user_id]
            if log.date == on_date
            and (appliance_id is None or log.appliance_id == appliance_id)
            and (is_compliant is None or log.is_compliant == is_compliant)
        ]

    async def list_appliances(self, user_id, types):
        return [a for a in self.appliances[user_id] if a.type in types]

    async def find_open_alerts(self, user_id, *, type, title, since):
        return [
            a
            for a in self.alerts
            if a.user_id == user_id
            and a.type == type
            and a.title == title
            and not a.acknowledged
            and a.created_at >= since
        ]

    async def insert_alert(self, candidate, created_at, *, dedupe_window_hours=24):
        bucket = dedupe_bucket_start(created_at, dedupe_window_hours)
        for existing in self.alerts:
            if (
                not existing.acknowledged
                and (existing.user_id, existing.type, existing.title) == (candidate.user_id, candidate.type, candidate.title)
                and dedupe_bucket_start(existing.created_at, dedupe_window_hours) == bucket
            ):
                raise DuplicateAlertError(candidate.title)
        record = AlertRecord(
            alert_id=uuid.uuid4(),
            user_id=candidate.user_id,
            type=candidate.type,
            severity=candidate.severity,
            title=candidate.title,
            message=candidate.message,
            created_at=created_at,
            related_id=candidate.related_id,
        )
        self.alerts.append(record)
        return record


@pytest.fixture
def memory_store():
    return InMemoryAlertStore()
