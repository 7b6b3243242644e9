"""
Reminder dispatch orchestrator - the entry point called by the cron trigger.

One invocation:
    1. Sweep stale claims and purge old ledger entries
    2. Load sessions starting within the widest reminder lead time
    3. For every (session, due reminder type):
         Due -> Claim -> Render -> Dispatch -> Commit
       or Due -> Claim lost -> Skipped

Invocations are stateless and may overlap; the ledger claim is the only
coordination between them. A unit that fails on every channel is committed
as failed and never retried by later runs - it is reported instead.
"""

import asyncio
import enum
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping

import sentry_sdk

from core.config import ReminderSettings, get_reminder_settings
from core.enums import ChannelKind, LedgerState, ReminderType
from core.notifications import ledger
from core.notifications.dispatcher import (
    Sender,
    overall_outcome,
    send_to_targets,
    summarize_failures,
)
from core.notifications.templates import render_notification
from core.notifications.types import (
    ChannelTarget,
    DispatchKey,
    build_channel_targets,
    lead_time,
)
from core.notifications.windows import due_reminder_types, widest_lead_time
from core.sessions import ClassSession, list_sessions_between
from core.timezone import ensure_utc

logger = logging.getLogger(__name__)


class UnitOutcome(str, enum.Enum):
    sent = "sent"
    failed = "failed"
    skipped = "skipped"  # Another invocation owns or finished the key
    deferred = "deferred"  # Time budget ran out before claiming
    error = "error"  # Did not finish; the stale sweep will recover the claim


@dataclass
class DispatchReport:
    """Summary of one orchestrator invocation."""

    started_at: datetime
    sessions_examined: int = 0
    outcomes: Counter = field(default_factory=Counter)
    by_type: dict[str, Counter] = field(default_factory=dict)
    stale_reclaimable: int = 0
    stale_failed: int = 0
    purged: int = 0

    def record(self, reminder_type: ReminderType, outcome: UnitOutcome) -> None:
        self.outcomes[outcome] += 1
        self.by_type.setdefault(reminder_type.value, Counter())[outcome] += 1

    def count(self, outcome: UnitOutcome) -> int:
        return self.outcomes[outcome]

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "sessions_examined": self.sessions_examined,
            **{outcome.value: self.outcomes[outcome] for outcome in UnitOutcome},
            "by_type": {
                reminder_type: {o.value: n for o, n in counts.items()}
                for reminder_type, counts in self.by_type.items()
            },
            "stale_claims": {
                "reclaimable": self.stale_reclaimable,
                "failed": self.stale_failed,
            },
            "purged": self.purged,
        }


async def _housekeeping(
    now: datetime, settings: ReminderSettings, report: DispatchReport
) -> None:
    """Stale-claim sweep and retention purge. Failures never stop the run."""
    try:
        sweep = await asyncio.wait_for(
            ledger.sweep_stale_claims(
                now=now,
                stale_after=settings.stale_claim_after,
                max_attempts=settings.max_claim_attempts,
            ),
            settings.ledger_timeout,
        )
        report.stale_reclaimable = sweep.reclaimable
        report.stale_failed = sweep.failed
        if sweep.failed:
            sentry_sdk.capture_message(
                f"{sweep.failed} reminder dispatch(es) abandoned and marked failed",
                level="error",
            )
    except Exception as e:
        logger.error(f"Stale claim sweep failed: {e!r}")
        sentry_sdk.capture_exception(e)

    try:
        report.purged = await asyncio.wait_for(
            ledger.purge_expired_entries(now=now, retention=settings.ledger_retention),
            settings.ledger_timeout,
        )
    except Exception as e:
        logger.error(f"Ledger purge failed: {e!r}")
        sentry_sdk.capture_exception(e)


async def _dispatch_unit(
    session: ClassSession,
    reminder_type: ReminderType,
    *,
    now: datetime,
    settings: ReminderSettings,
    targets: list[ChannelTarget],
    senders: Mapping[ChannelKind, Sender] | None,
) -> UnitOutcome:
    """Claim, render, dispatch and commit one (session, reminder type)."""
    key = DispatchKey(session.session_id, reminder_type)

    try:
        claim = await asyncio.wait_for(
            ledger.try_claim(
                key,
                now=now,
                stale_after=settings.stale_claim_after,
                max_attempts=settings.max_claim_attempts,
                session_scheduled_at=session.scheduled_at,
            ),
            settings.ledger_timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(f"Timed out claiming {key}, leaving it for a later run")
        return UnitOutcome.error

    if claim is None:
        return UnitOutcome.skipped

    notification = render_notification(
        session,
        reminder_type,
        now=now,
        display_timezone=settings.display_timezone,
    )
    results = await send_to_targets(
        notification,
        targets,
        max_parallel=settings.channel_concurrency,
        max_attempts=settings.send_max_attempts,
        send_timeout=settings.send_timeout,
        senders=senders,
    )
    outcome = overall_outcome(results)
    error_message = summarize_failures(results)

    try:
        committed = await asyncio.wait_for(
            ledger.commit(
                claim,
                outcome,
                now=now,
                results=results,
                error_message=error_message,
            ),
            settings.ledger_timeout,
        )
    except asyncio.TimeoutError:
        logger.error(
            f"Timed out committing {key} as {outcome.value}, "
            "stale claim sweep will recover it"
        )
        return UnitOutcome.error

    if not committed:
        return UnitOutcome.skipped

    if outcome == LedgerState.failed:
        logger.error(f"Reminder {key} failed on every channel: {error_message}")
        sentry_sdk.capture_message(
            f"Reminder {key} undeliverable: {error_message}", level="error"
        )
        return UnitOutcome.failed

    delivered = sum(1 for r in results if r.ok)
    logger.info(
        f"Sent {reminder_type.value} for {session.class_name} "
        f"({session.session_id}) to {delivered}/{len(results)} target(s)"
    )
    return UnitOutcome.sent


async def run_reminder_dispatch(
    *,
    now: datetime | None = None,
    settings: ReminderSettings | None = None,
    targets: Iterable[ChannelTarget] | None = None,
    senders: Mapping[ChannelKind, Sender] | None = None,
) -> DispatchReport:
    """
    Run one reminder dispatch cycle.

    Args:
        now: Evaluation time (defaults to the current UTC time). Also used
             as the claim timestamp for every claim in this run.
        settings: Tunables (defaults to environment configuration)
        targets: Channel targets (defaults to those built from settings)
        senders: Provider overrides per channel kind

    Returns:
        DispatchReport with per-outcome and per-reminder-type counts

    Raises:
        Exception: Only if sessions cannot be loaded at all. Failures of
                   individual units are contained and reported.
    """
    settings = settings or get_reminder_settings()
    targets = build_channel_targets(settings) if targets is None else list(targets)
    now = ensure_utc(now or datetime.now(timezone.utc))

    loop = asyncio.get_running_loop()
    deadline = loop.time() + settings.time_budget
    report = DispatchReport(started_at=now)

    if not targets:
        logger.error("No channel targets configured, due reminders will fail")

    await _housekeeping(now, settings, report)

    try:
        sessions = await asyncio.wait_for(
            list_sessions_between(now, now + widest_lead_time()),
            settings.ledger_timeout,
        )
    except Exception as e:
        logger.error(f"Could not load upcoming sessions: {e!r}")
        sentry_sdk.capture_exception(e)
        raise

    report.sessions_examined = len(sessions)

    units = [
        (session, reminder_type)
        for session in sessions
        for reminder_type in sorted(
            due_reminder_types(now, session, catch_up=settings.catch_up),
            key=lead_time,
            reverse=True,
        )
    ]
    semaphore = asyncio.Semaphore(settings.session_concurrency)

    async def run_unit(session: ClassSession, reminder_type: ReminderType):
        async with semaphore:
            if loop.time() >= deadline:
                return reminder_type, UnitOutcome.deferred
            try:
                outcome = await _dispatch_unit(
                    session,
                    reminder_type,
                    now=now,
                    settings=settings,
                    targets=targets,
                    senders=senders,
                )
            except Exception as e:
                logger.exception(
                    f"Reminder {reminder_type.value} for session "
                    f"{session.session_id} crashed"
                )
                sentry_sdk.capture_exception(e)
                outcome = UnitOutcome.error
            return reminder_type, outcome

    for reminder_type, outcome in await asyncio.gather(
        *(run_unit(session, reminder_type) for session, reminder_type in units)
    ):
        report.record(reminder_type, outcome)

    deferred = report.count(UnitOutcome.deferred)
    if deferred:
        logger.warning(f"Time budget exhausted, deferred {deferred} reminder(s)")

    logger.info(
        f"Reminder run complete: {report.sessions_examined} session(s), "
        f"{report.count(UnitOutcome.sent)} sent, "
        f"{report.count(UnitOutcome.failed)} failed, "
        f"{report.count(UnitOutcome.skipped)} skipped"
    )
    return report
