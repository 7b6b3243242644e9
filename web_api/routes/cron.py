"""
Cron trigger API routes.

Endpoints:
- POST /api/cron/session-reminders - Run one reminder dispatch cycle (QStash, every 5 min)
- GET /api/cron/session-reminders/status - Configuration and ledger summary
"""

import logging
import sys
from pathlib import Path

from fastapi import APIRouter, Header, HTTPException, Request

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from core.config import get_reminder_settings
from core.cron_auth import CronAuthError, authorize_cron_request
from core.notifications.ledger import count_entries_by_state
from core.notifications.orchestrator import run_reminder_dispatch
from core.notifications.types import build_channel_targets

router = APIRouter(prefix="/api/cron", tags=["cron"])

logger = logging.getLogger(__name__)


async def _authorize(
    request: Request, authorization: str | None, upstash_signature: str | None
) -> None:
    body = await request.body()
    try:
        method = authorize_cron_request(
            body, request.url.path, authorization, upstash_signature
        )
    except CronAuthError as e:
        logger.warning(f"Cron request rejected: {e}")
        raise HTTPException(status_code=401, detail=str(e))
    logger.debug(f"Cron request authorized via {method}")


@router.post("/session-reminders")
async def session_reminders(
    request: Request,
    authorization: str | None = Header(None),
    upstash_signature: str | None = Header(None),
):
    """
    Run one reminder dispatch cycle.

    Called by the external cron service on a fixed interval. No body is
    required. Safe to call concurrently or repeatedly.
    """
    await _authorize(request, authorization, upstash_signature)

    try:
        report = await run_reminder_dispatch()
    except Exception as e:
        logger.error(f"Reminder run failed: {e}")
        raise HTTPException(status_code=500, detail="Reminder run failed")

    return {"success": True, "report": report.to_dict()}


@router.get("/session-reminders/status")
async def session_reminders_status(
    request: Request,
    authorization: str | None = Header(None),
    upstash_signature: str | None = Header(None),
):
    """Configured targets per channel and ledger entries per state."""
    await _authorize(request, authorization, upstash_signature)

    settings = get_reminder_settings()
    targets = build_channel_targets(settings)
    channels: dict[str, int] = {}
    for target in targets:
        channels[target.kind.value] = channels.get(target.kind.value, 0) + 1

    try:
        ledger_counts = {
            state.value: count for state, count in (await count_entries_by_state()).items()
        }
    except Exception as e:
        logger.error(f"Could not read ledger: {e}")
        ledger_counts = None

    return {
        "status": "ok",
        "interval_minutes": settings.interval_minutes,
        "catch_up": settings.catch_up,
        "channels": channels,
        "ledger": ledger_counts,
    }
