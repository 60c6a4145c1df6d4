#!/usr/bin/env python3
"""
Run one alert pass from the command line, outside Celery.

Usage:
  python scripts/run_alert_pass.py
  python scripts/run_alert_pass.py --now 2026-03-02T12:00:00 --pretty
  python scripts/run_alert_pass.py --database-url sqlite+aiosqlite:///./local.db
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from dataclasses import replace
from datetime import datetime

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from alerts.engine import AlertRules, TenantEnumerationError, run_alert_pass
from alerts.store import SqlAlchemyAlertStore
from core.config import get_settings
from db.session import build_engine, build_session_factory


async def _run(database_url: str, now: datetime, rules: AlertRules) -> dict[str, int]:
    engine = build_engine(database_url)
    try:
        store = SqlAlchemyAlertStore(build_session_factory(engine))
        result = await run_alert_pass(store, now, rules)
        return result.as_dict()
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate compliance alerts for every tenant")
    parser.add_argument("--now", help="ISO timestamp (UTC) to evaluate at; defaults to the current time")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    parser.add_argument("--dedupe-window-hours", type=int, help="Override the dedupe window")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    args = parser.parse_args(argv)

    settings = get_settings()
    rules = AlertRules.from_settings(settings)
    if args.dedupe_window_hours is not None:
        rules = replace(rules, dedupe_window_hours=args.dedupe_window_hours)

    now = datetime.fromisoformat(args.now) if args.now else datetime.utcnow()
    try:
        counts = asyncio.run(_run(args.database_url or settings.database_url, now, rules))
    except TenantEnumerationError as exc:
        print(json.dumps({"status": "failed", "error": str(exc), "alertsCreated": 0}))
        return 1

    print(json.dumps({"status": "success", **counts}, indent=2 if args.pretty else None))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
