"""
Alert Workers — Scheduled compliance alert generation.

Workers:
  1. generate_alerts: run one alert pass over every tenant, then push the new
     alerts to live dashboards (Redis) and to tenants who opted into email
"""

import asyncio
from collections import defaultdict
from datetime import datetime

import structlog

from alerts.email import send_alert_email
from alerts.publish import publish_alerts
from compliance.records import AlertRecord
from workers.celery_app import celery_app

logger = structlog.get_logger()


async def notify_tenants(store, created: list[AlertRecord]) -> dict[str, int]:
    """
    Deliver freshly created alerts. Delivery problems never undo the pass:
    they are logged and counted.
    """
    summary = {"published": 0, "emailed": 0, "delivery_failures": 0}
    if not created:
        return summary

    try:
        summary["published"] = await publish_alerts(created)
    except Exception as exc:  # noqa: BLE001
        summary["delivery_failures"] += 1
        logger.error("alerts.publish.failed", count=len(created), error=str(exc))

    by_tenant: dict = defaultdict(list)
    for alert in created:
        by_tenant[alert.user_id].append(alert)

    for user_id, alerts in by_tenant.items():
        try:
            tenant = await store.get_tenant(user_id)
        except Exception as exc:  # noqa: BLE001
            summary["delivery_failures"] += 1
            logger.error("alerts.email.tenant_lookup_failed", user_id=str(user_id), error=str(exc))
            continue
        if tenant is None or not tenant.email_alerts_enabled or not tenant.email:
            continue
        for alert in alerts:
            if await send_alert_email(tenant.email, alert, tenant.business_name):
                summary["emailed"] += 1

    return summary


@celery_app.task(
    name="workers.alerts.generate_alerts",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
    acks_late=True,
)
def generate_alerts(self, now: str | None = None):
    """
    Run the alert engine once over all tenants.

    `now` (ISO timestamp, UTC) pins the evaluation time; defaults to the
    current time. Retries only when tenants cannot be listed at all.
    """
    from alerts.engine import AlertRules, TenantEnumerationError, run_alert_pass
    from alerts.store import SqlAlchemyAlertStore
    from core.config import get_settings
    from db.session import build_engine, build_session_factory

    run_id = self.request.id or "manual"
    pass_time = datetime.fromisoformat(now) if now else datetime.utcnow()

    async def _generate():
        settings = get_settings()
        engine = build_engine(settings.database_url)
        try:
            store = SqlAlchemyAlertStore(build_session_factory(engine))
            result = await run_alert_pass(store, pass_time, AlertRules.from_settings(settings))
            delivery = await notify_tenants(store, result.created)
            summary = {
                "status": "success",
                **result.as_dict(),
                **delivery,
                "run_id": run_id,
            }
            logger.info("alerts.generate.completed", **summary)
            return summary
        finally:
            await engine.dispose()

    logger.info("alerts.generate.started", run_id=run_id, now=pass_time.isoformat())
    try:
        return asyncio.run(_generate())
    except TenantEnumerationError as exc:
        logger.error("alerts.generate.failed", run_id=run_id, error=str(exc))
        raise self.retry(exc=exc)
