"""
API Integration Tests — Alert endpoints with seeded data.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from compliance.rules import dedupe_bucket_start


@pytest.fixture
async def seeded_alerts(test_db, seeded_db):
    """Seed alerts for testing."""
    from db.models import Alert

    user_id = seeded_db["user_id"]
    base = datetime(2026, 3, 2, 12, 0)

    alerts = []
    configs = [
        ("temperature", "critical", "Temperature out of range: Walk-in Fridge", False),
        ("overdue_task", "high", "Opening checklist not completed", False),
        ("certificate_expiry", "medium", "Level 2 certificate expiring soon", False),
        ("overdue_task", "critical", "Closing checklist not completed", True),
    ]

    for offset, (alert_type, severity, title, acknowledged) in enumerate(configs):
        created_at = base - timedelta(hours=offset)
        alert = Alert(
            user_id=user_id,
            type=alert_type,
            severity=severity,
            title=title,
            message=f"Test {alert_type} alert",
            acknowledged=acknowledged,
            created_at=created_at,
            dedupe_bucket=dedupe_bucket_start(created_at),
        )
        test_db.add(alert)
        alerts.append(alert)

    # Belongs to another tenant and must never be visible
    other = Alert(
        user_id=seeded_db["other_user_id"],
        type="temperature",
        severity="critical",
        title="Temperature out of range: Display Chiller",
        message="Other tenant alert",
        created_at=base,
        dedupe_bucket=dedupe_bucket_start(base),
    )
    test_db.add(other)

    await test_db.flush()
    await test_db.commit()
    return {"alerts": alerts, "other_alert": other, **seeded_db}


@pytest.mark.asyncio
class TestAlertsIntegration:
    async def test_list_alerts_with_data(self, client: AsyncClient, seeded_alerts):
        """Seeded DB returns only the caller's alerts, newest first."""
        resp = await client.get("/api/v1/alerts/")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 4
        assert data[0]["title"] == "Temperature out of range: Walk-in Fridge"
        assert all(a["user_id"] == str(seeded_alerts["user_id"]) for a in data)

    async def test_filter_by_acknowledged(self, client: AsyncClient, seeded_alerts):
        resp = await client.get("/api/v1/alerts/?acknowledged=false")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 3
        assert not any(a["acknowledged"] for a in data)

    async def test_filter_by_severity(self, client: AsyncClient, seeded_alerts):
        resp = await client.get("/api/v1/alerts/?severity=critical")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 2
        assert all(a["severity"] == "critical" for a in data)

    async def test_filter_by_type(self, client: AsyncClient, seeded_alerts):
        resp = await client.get("/api/v1/alerts/?type=overdue_task")
        assert resp.status_code == 200
        assert {a["type"] for a in resp.json()} == {"overdue_task"}

    async def test_pagination(self, client: AsyncClient, seeded_alerts):
        """Skip and limit work."""
        resp = await client.get("/api/v1/alerts/?limit=2")
        assert resp.status_code == 200
        assert len(resp.json()) == 2

        resp2 = await client.get("/api/v1/alerts/?skip=3&limit=2")
        assert resp2.status_code == 200
        assert len(resp2.json()) == 1

    async def test_summary_counts(self, client: AsyncClient, seeded_alerts):
        """Severity counts cover active alerts only."""
        resp = await client.get("/api/v1/alerts/summary")
        assert resp.status_code == 200
        assert resp.json() == {"total": 4, "active": 3, "acknowledged": 1, "critical": 1, "high": 1}

    async def test_alert_response_shape(self, client: AsyncClient, seeded_alerts):
        resp = await client.get("/api/v1/alerts/?limit=1")
        alert = resp.json()[0]
        for field in ["alert_id", "type", "severity", "title", "message", "acknowledged", "created_at"]:
            assert field in alert


@pytest.mark.asyncio
class TestAlertActions:
    async def test_acknowledge(self, client: AsyncClient, seeded_alerts):
        alert = seeded_alerts["alerts"][0]
        resp = await client.patch(f"/api/v1/alerts/{alert.alert_id}/acknowledge")
        assert resp.status_code == 200
        body = resp.json()
        assert body["acknowledged"] is True
        assert body["acknowledged_at"] is not None

        summary = (await client.get("/api/v1/alerts/summary")).json()
        assert summary["active"] == 2
        assert summary["critical"] == 0

    async def test_acknowledge_twice_rejected(self, client: AsyncClient, seeded_alerts):
        alert = seeded_alerts["alerts"][3]
        resp = await client.patch(f"/api/v1/alerts/{alert.alert_id}/acknowledge")
        assert resp.status_code == 400

    async def test_dismiss_deletes(self, client: AsyncClient, seeded_alerts):
        alert = seeded_alerts["alerts"][1]
        resp = await client.delete(f"/api/v1/alerts/{alert.alert_id}")
        assert resp.status_code == 204

        again = await client.delete(f"/api/v1/alerts/{alert.alert_id}")
        assert again.status_code == 404

        remaining = (await client.get("/api/v1/alerts/")).json()
        assert len(remaining) == 3

    async def test_unknown_alert_404(self, client: AsyncClient, seeded_alerts):
        resp = await client.patch(f"/api/v1/alerts/{uuid.uuid4()}/acknowledge")
        assert resp.status_code == 404

    async def test_other_tenant_alert_is_invisible(self, client: AsyncClient, seeded_alerts):
        other = seeded_alerts["other_alert"]
        assert (await client.patch(f"/api/v1/alerts/{other.alert_id}/acknowledge")).status_code == 404
        assert (await client.delete(f"/api/v1/alerts/{other.alert_id}")).status_code == 404


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
