#!/usr/bin/env python3
"""
Register (or re-register) the QStash schedule that triggers reminders.

Deletes every existing schedule aimed at the reminder endpoint and creates
exactly one new one. Safe to run on every deploy.

Usage:
    python scripts/register_reminder_schedule.py
    python scripts/register_reminder_schedule.py --url https://api.example.com/api/cron/session-reminders --interval 5

Requirements:
    - QSTASH_TOKEN set
    - APP_URL set (or pass --url)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

load_dotenv(project_root / ".env")
load_dotenv(project_root / ".env.local", override=True)

from core.config import get_app_url, get_reminder_settings
from core.notifications.registrar import (
    REMINDER_CRON_PATH,
    ScheduleRegistrationError,
    register_reminder_schedule,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--url",
        default=None,
        help=f"Cron endpoint URL (default: $APP_URL{REMINDER_CRON_PATH})",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Minutes between runs (default: REMINDER_INTERVAL_MINUTES or 5)",
    )
    args = parser.parse_args()

    url = args.url or f"{get_app_url()}{REMINDER_CRON_PATH}"
    interval = args.interval or get_reminder_settings().interval_minutes

    try:
        schedule_id = asyncio.run(register_reminder_schedule(url, interval))
    except (ScheduleRegistrationError, ValueError) as e:
        logger.error(f"Registration failed: {e}")
        return 1

    print(f"Registered schedule {schedule_id}: {url} every {interval} min")
    return 0


if __name__ == "__main__":
    sys.exit(main())
