"""
Tests for alert email rendering and SendGrid delivery gating.
"""

import uuid
from datetime import datetime
from types import SimpleNamespace

import pytest

from alerts import email as alert_email
from alerts.email import alert_subject, render_alert_email, send_alert_email
from alerts.publish import alert_channel, alert_message, publish_alerts
from compliance.records import AlertRecord
from core.config import Settings


def _alert(severity="critical", alert_type="temperature", title="Temperature out of range: Walk-in Fridge"):
    return AlertRecord(
        alert_id=uuid.uuid4(),
        user_id=uuid.UUID("00000000-0000-0000-0000-000000000001"),
        type=alert_type,
        severity=severity,
        title=title,
        message="Walk-in Fridge recorded 9.5°C at 11:15 on 2026-03-02.",
        created_at=datetime(2026, 3, 2, 12, 0),
    )


class FakeSendGrid:
    sent = []
    status_code = 202

    def __init__(self, api_key):
        self.api_key = api_key

    def send(self, message):
        FakeSendGrid.sent.append(message)
        return SimpleNamespace(status_code=FakeSendGrid.status_code)


@pytest.fixture
def fake_sendgrid(monkeypatch):
    FakeSendGrid.sent = []
    FakeSendGrid.status_code = 202
    monkeypatch.setattr(alert_email.sendgrid, "SendGridAPIClient", FakeSendGrid)
    monkeypatch.setattr(alert_email, "get_settings", lambda: Settings(sendgrid_api_key="SG.test"))
    return FakeSendGrid


class TestRendering:
    def test_subject_carries_severity_label(self):
        assert alert_subject(_alert()) == "[CRITICAL] Temperature out of range: Walk-in Fridge"
        assert alert_subject(_alert("high")).startswith("[HIGH PRIORITY]")

    def test_body_has_next_steps_for_type(self):
        html = render_alert_email(_alert(), "The Greasy Spoon", "https://app.example.com")
        assert "Check the appliance immediately" in html
        assert "The Greasy Spoon" in html
        assert 'href="https://app.example.com"' in html

    def test_unknown_type_uses_default_steps(self):
        html = render_alert_email(_alert(alert_type="inspection"), app_url="https://app.example.com")
        assert "Review the alert in the app" in html

    def test_alert_text_is_escaped(self):
        html = render_alert_email(_alert(title="<b>Fridge</b>"), "Fish & Chips", "https://app.example.com")
        assert "&lt;b&gt;Fridge&lt;/b&gt;" in html
        assert "Fish &amp; Chips" in html


@pytest.mark.asyncio
class TestSendAlertEmail:
    async def test_critical_alert_sent(self, fake_sendgrid):
        assert await send_alert_email("owner@example.com", _alert()) is True
        assert len(fake_sendgrid.sent) == 1

    async def test_medium_alert_not_sent(self, fake_sendgrid):
        assert await send_alert_email("owner@example.com", _alert("medium")) is False
        assert fake_sendgrid.sent == []

    async def test_missing_api_key_skips(self, fake_sendgrid, monkeypatch):
        monkeypatch.setattr(alert_email, "get_settings", lambda: Settings(sendgrid_api_key=""))
        assert await send_alert_email("owner@example.com", _alert()) is False
        assert fake_sendgrid.sent == []

    async def test_provider_error_returns_false(self, fake_sendgrid):
        fake_sendgrid.status_code = 500
        assert await send_alert_email("owner@example.com", _alert("high")) is False


class FakeRedis:
    def __init__(self, subscribers=1):
        self.messages = []
        self.subscribers = subscribers

    async def publish(self, channel, message):
        self.messages.append((channel, message))
        return self.subscribers


@pytest.mark.asyncio
class TestPublish:
    async def test_publishes_to_tenant_channel(self):
        redis = FakeRedis(subscribers=2)
        alert = _alert()

        notified = await publish_alerts([alert, _alert("high")], redis=redis)

        assert notified == 4
        assert redis.messages[0] == (alert_channel(alert.user_id), alert_message(alert))
        assert redis.messages[0][0] == "alerts:00000000-0000-0000-0000-000000000001"

    async def test_nothing_to_publish(self):
        redis = FakeRedis()
        assert await publish_alerts([], redis=redis) == 0
        assert redis.messages == []
