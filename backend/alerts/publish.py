"""
Real-time alert delivery over Redis pub/sub.

Each tenant's dashboard subscribes to `alerts:<user_id>`; a message is
published for every alert the engine creates.
"""

import json

import redis.asyncio as aioredis

from compliance.records import AlertRecord
from core.config import get_settings


def alert_channel(user_id) -> str:
    return f"alerts:{user_id}"


def alert_message(alert: AlertRecord) -> str:
    return json.dumps({"type": "alert", "payload": alert.to_payload()})


async def publish_alerts(alerts: list[AlertRecord], redis=None) -> int:
    """
    Publish new alerts to Redis pub/sub.
    Returns number of subscribers notified.
    """
    if not alerts:
        return 0

    owns_client = redis is None
    if owns_client:
        redis = aioredis.from_url(get_settings().redis_url)
    try:
        total_subs = 0
        for alert in alerts:
            total_subs += await redis.publish(alert_channel(alert.user_id), alert_message(alert))
        return total_subs
    finally:
        if owns_client:
            await redis.aclose()
