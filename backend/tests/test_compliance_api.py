"""
API Integration Tests — Temperature evaluation and daily compliance status.
"""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
class TestTemperatureEvaluation:
    async def test_fridge_in_range(self, client: AsyncClient):
        resp = await client.post("/api/v1/compliance/temperature", json={"type": "fridge", "temperature": 5.0})
        assert resp.status_code == 200
        body = resp.json()
        assert body["is_compliant"] is True
        assert body["target_min"] == 0
        assert body["target_max"] == 5

    async def test_fridge_out_of_range(self, client: AsyncClient):
        resp = await client.post("/api/v1/compliance/temperature", json={"type": "fridge", "temperature": 5.1})
        assert resp.json()["is_compliant"] is False

    async def test_delivery_uses_chilled_range(self, client: AsyncClient):
        resp = await client.post("/api/v1/compliance/temperature", json={"type": "delivery", "temperature": 7.5})
        body = resp.json()
        assert body["is_compliant"] is True
        assert body["target_max"] == 8

    async def test_probe_calibration(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/compliance/temperature",
            json={"type": "probe_calibration", "ice_temp": 0.5, "boiling_temp": 98.5},
        )
        body = resp.json()
        assert body["is_compliant"] is False
        assert body["ice_range"] == [-1, 1]
        assert body["boiling_range"] == [99, 101]

    async def test_dishwasher_has_no_threshold(self, client: AsyncClient):
        resp = await client.post("/api/v1/compliance/temperature", json={"type": "dishwasher", "temperature": 20})
        body = resp.json()
        assert body["is_compliant"] is True
        assert body["target_min"] is None

    async def test_unknown_type_rejected(self, client: AsyncClient):
        resp = await client.post("/api/v1/compliance/temperature", json={"type": "sous_vide", "temperature": 60})
        assert resp.status_code == 422


@pytest.mark.asyncio
class TestDailyCompliance:
    async def test_daily_summary(self, client: AsyncClient, seeded_db, test_db):
        from db.models import Checklist, CleaningRecord, TemperatureLog

        user_id = seeded_db["user_id"]
        day = date(2026, 3, 4)
        for temperature, compliant in ((3.0, True), (4.0, True), (8.0, False)):
            test_db.add(
                TemperatureLog(
                    user_id=user_id,
                    type="fridge",
                    appliance_id=seeded_db["fridge"].appliance_id,
                    appliance_name="Walk-in Fridge",
                    temperature=temperature,
                    date=day,
                    time="09:00",
                    is_compliant=compliant,
                )
            )
        test_db.add_all(
            [
                Checklist(user_id=user_id, type="opening", date=day, signed_off=True),
                CleaningRecord(user_id=user_id, frequency="daily", date=day, signed_off=True),
                CleaningRecord(user_id=user_id, frequency="weekly", date=day - timedelta(days=2), signed_off=True),
                # Another tenant's sign-off never counts
                Checklist(user_id=seeded_db["other_user_id"], type="closing", date=day, signed_off=True),
            ]
        )
        await test_db.commit()

        resp = await client.get("/api/v1/compliance/today?day=2026-03-04")
        assert resp.status_code == 200
        body = resp.json()
        assert body["date"] == "2026-03-04"
        assert body["week_commencing"] == "2026-03-02"
        assert body["temperature_log_count"] == 3
        assert body["non_compliant_count"] == 1
        assert body["temperature_compliance_pct"] == 67
        assert body["opening_complete"] is True
        assert body["closing_complete"] is False
        assert body["cleaning_complete"] is True
        assert body["weekly_cleaning_complete"] is True

    async def test_empty_day(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/compliance/today?day=2026-03-04")
        body = resp.json()
        assert body["temperature_log_count"] == 0
        assert body["temperature_compliance_pct"] is None
        assert body["cleaning_complete"] is False
