#!/usr/bin/env python3
"""
Run one engine job from a plain cron entry (same code path as the /cron routes).

  cd backend && python scripts/run_job.py reminders
  cd backend && python scripts/run_job.py digest morning
  cd backend && python scripts/run_job.py refresh --file schedule.json --start 2025-06-14 --end 2025-06-20

refresh reads a JSON file holding a list of upstream session records (or an object with an
"events" list) and applies it as one acquisition of the given date range.
"""
import argparse
import json
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from waveping.config import settings
from waveping.core.clock import BusinessClock
from waveping.core.errors import ConfigurationError


class JsonFileSource:
    """ScheduleSource backed by a JSON dump of the upstream calendar."""

    def __init__(self, path: Path):
        self.path = path

    def fetch(self, start_date: date, end_date: date) -> list[dict]:
        data = json.loads(self.path.read_text(encoding="utf-8"))
        events = data.get("events", []) if isinstance(data, dict) else data
        return [e for e in events if _in_range(e, start_date, end_date)]


def _in_range(raw, start_date: date, end_date: date) -> bool:
    # Unparseable dates are kept so the refresh counts them as skipped
    try:
        return start_date <= date.fromisoformat(str(raw.get("date"))) <= end_date
    except (AttributeError, ValueError):
        return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a WavePing job once")
    sub = parser.add_subparsers(dest="job", required=True)
    sub.add_parser("reminders", help="Send lead-time reminders due now")
    p_digest = sub.add_parser("digest", help="Send the morning or evening digest")
    p_digest.add_argument("digest_type", choices=["morning", "evening"])
    p_refresh = sub.add_parser("refresh", help="Apply a schedule acquisition and send change alerts")
    p_refresh.add_argument("--file", type=Path, required=True, help="JSON list of upstream session records")
    p_refresh.add_argument("--start", type=date.fromisoformat, default=None, help="YYYY-MM-DD (default today at the park)")
    p_refresh.add_argument("--end", type=date.fromisoformat, default=None, help="YYYY-MM-DD (default start + 13 days)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.job == "reminders":
            from waveping.scheduler.reminder_job import run_reminder_job

            result = run_reminder_job()
        elif args.job == "digest":
            from waveping.scheduler.digest_job import run_digest_job

            result = run_digest_job(args.digest_type)
        else:
            from waveping.scheduler.refresh_job import run_refresh_from_source

            start = args.start or BusinessClock(settings.business_timezone).today()
            end = args.end or start + timedelta(days=13)
            result = run_refresh_from_source(JsonFileSource(args.file), start, end)
    except ConfigurationError as e:
        print(f"FAIL {e}", file=sys.stderr)
        return 2
    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
