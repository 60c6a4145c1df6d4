"""
Email Delivery for alerts.

Only high/critical alerts are emailed; the rest stay in the dashboard.
"""

from html import escape

import sendgrid
import structlog
from sendgrid.helpers.mail import Mail

from compliance.records import AlertRecord
from core.config import get_settings

logger = structlog.get_logger()

EMAIL_SEVERITIES = ("high", "critical")

SEVERITY_STYLES = {
    "critical": ("#dc2626", "CRITICAL"),
    "high": ("#ea580c", "HIGH PRIORITY"),
    "medium": ("#ca8a04", "MEDIUM PRIORITY"),
    "low": ("#2563eb", "LOW PRIORITY"),
}

NEXT_STEPS = {
    "temperature": [
        "Check the appliance immediately",
        "Move food to a working unit if needed",
        "Document any corrective action taken",
    ],
    "certificate_expiry": [
        "Contact the employee about renewal",
        "Schedule training/renewal if needed",
        "Update records once renewed",
    ],
    "overdue_task": [
        "Complete the task as soon as possible",
        "Document any reasons for delay",
        "Sign off in the app when done",
    ],
}

DEFAULT_NEXT_STEPS = [
    "Review the alert in the app",
    "Take appropriate action",
    "Document any changes made",
]


def alert_subject(alert: AlertRecord) -> str:
    _, label = SEVERITY_STYLES.get(alert.severity, SEVERITY_STYLES["low"])
    return f"[{label}] {alert.title}"


def render_alert_email(alert: AlertRecord, business_name: str = "", app_url: str = "") -> str:
    """Render the alert email body. Alert text is HTML-escaped."""
    color, label = SEVERITY_STYLES.get(alert.severity, SEVERITY_STYLES["low"])
    steps = "".join(f"<li>{step}</li>" for step in NEXT_STEPS.get(alert.type, DEFAULT_NEXT_STEPS))
    business = (
        f'<p style="color: #6b7280;"><strong>Business:</strong> {escape(business_name)}</p>' if business_name else ""
    )
    link = app_url or get_settings().app_url

    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="background: {color}; color: white; padding: 24px; border-radius: 12px 12px 0 0;">
        <span style="font-size: 12px; font-weight: 600; letter-spacing: 0.5px;">{label}</span>
        <h1 style="margin: 8px 0 0 0; font-size: 22px;">{escape(alert.title)}</h1>
      </div>
      <div style="background: #ffffff; padding: 24px; border: 1px solid #e5e7eb;">
        <p style="color: #4b5563; line-height: 1.6;">{escape(alert.message)}</p>
        {business}
        <p style="font-weight: 600; color: #374151;">What to do next:</p>
        <ul style="color: #6b7280; line-height: 1.6;">{steps}</ul>
        <a href="{link}"
           style="display: inline-block; background: #2563eb; color: white;
                  padding: 12px 24px; border-radius: 8px; text-decoration: none; font-weight: 600;">
          Open the app
        </a>
      </div>
      <div style="text-align: center; padding: 16px; color: #9ca3af; font-size: 12px;">
        To manage your notification settings, visit the app settings.
      </div>
    </div>
    """


async def send_alert_email(to_email: str, alert: AlertRecord, business_name: str = "") -> bool:
    """
    Send alert notification email via SendGrid.

    Returns True if sent successfully. Delivery failures are logged, not raised.
    """
    if alert.severity not in EMAIL_SEVERITIES:
        return False

    settings = get_settings()
    if not settings.sendgrid_api_key:
        logger.warning("alerts.email.not_configured", alert_id=str(alert.alert_id))
        return False

    try:
        sg = sendgrid.SendGridAPIClient(api_key=settings.sendgrid_api_key)
        email = Mail(
            from_email=settings.alert_from_email,
            to_emails=to_email,
            subject=alert_subject(alert),
            html_content=render_alert_email(alert, business_name, settings.app_url),
        )
        response = sg.send(email)
        return response.status_code in (200, 201, 202)
    except Exception as exc:  # noqa: BLE001
        logger.error("alerts.email.failed", alert_id=str(alert.alert_id), error=str(exc))
        return False
