#!/usr/bin/env python3
"""
Run one reminder dispatch cycle from the command line.

Does exactly what the cron endpoint does, against the configured database
and channels. The ledger still applies, so reminders that were already
sent are skipped.

Usage:
    python scripts/send_reminders_now.py
    python scripts/send_reminders_now.py --no-catch-up
    python scripts/send_reminders_now.py --status
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

load_dotenv(project_root / ".env")
load_dotenv(project_root / ".env.local", override=True)

from core.config import get_reminder_settings
from core.database import close_engine
from core.notifications.channels.telegram import close_client
from core.notifications.ledger import count_entries_by_state
from core.notifications.orchestrator import UnitOutcome, run_reminder_dispatch

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def run(catch_up: bool | None, status_only: bool) -> int:
    try:
        if status_only:
            counts = await count_entries_by_state()
            print(json.dumps({s.value: n for s, n in counts.items()}, indent=2))
            return 0

        settings = get_reminder_settings()
        if catch_up is not None:
            settings = dataclasses.replace(settings, catch_up=catch_up)

        report = await run_reminder_dispatch(settings=settings)
        print(json.dumps(report.to_dict(), indent=2))
        return 1 if report.count(UnitOutcome.failed) else 0
    finally:
        await close_client()
        await close_engine()


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one reminder dispatch cycle")
    parser.add_argument(
        "--no-catch-up",
        dest="catch_up",
        action="store_false",
        default=None,
        help="Only send reminders whose own window is open",
    )
    parser.add_argument(
        "--status", action="store_true", help="Print ledger counts and exit"
    )
    args = parser.parse_args()
    return asyncio.run(run(args.catch_up, args.status))


if __name__ == "__main__":
    sys.exit(main())
