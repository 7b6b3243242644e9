"""
Delivery ledger - idempotency store for reminder dispatches.

Every (session, reminder type) pair gets at most one row in
reminder_dispatches. Claiming a key is an INSERT guarded by the unique
constraint, so overlapping cron invocations racing on the same key have
exactly one winner. A claim left behind by a crashed invocation can be
taken over once it is older than the stale threshold, via a single
conditional UPDATE, until its attempt budget runs out.

States:
    claimed -> sent     (at least one channel delivered)
    claimed -> failed   (every channel failed, or the claim was abandoned)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable
from uuid import uuid4

from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError

from core.database import get_connection, get_transaction
from core.enums import LedgerState
from core.notifications.types import ChannelResult, DispatchKey
from core.tables import reminder_delivery_log, reminder_dispatches
from core.timezone import ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Claim:
    """Proof of ownership of a dispatch key for one invocation."""

    key: DispatchKey
    claim_token: str
    attempt: int  # 1 for a fresh claim, >1 when taking over a stale one


@dataclass
class SweepResult:
    reclaimable: int = 0  # stale claims left for try_claim to take over
    failed: int = 0  # stale claims closed as failed


def _key_clause(key: DispatchKey):
    return and_(
        reminder_dispatches.c.session_id == key.session_id,
        reminder_dispatches.c.reminder_type == key.reminder_type,
    )


async def try_claim(
    key: DispatchKey,
    *,
    now: datetime,
    stale_after: timedelta,
    max_attempts: int,
    session_scheduled_at: datetime | None = None,
) -> Claim | None:
    """
    Atomically claim a dispatch key.

    Returns:
        A Claim if this caller now owns the key, None if another invocation
        already handled it (or still holds a fresh claim).
    """
    now = ensure_utc(now)
    token = str(uuid4())

    try:
        async with get_transaction() as conn:
            await conn.execute(
                insert(reminder_dispatches).values(
                    session_id=key.session_id,
                    reminder_type=key.reminder_type,
                    state=LedgerState.claimed,
                    claim_token=token,
                    claimed_at=now,
                    attempts=1,
                    session_scheduled_at=(
                        ensure_utc(session_scheduled_at)
                        if session_scheduled_at
                        else None
                    ),
                    created_at=now,
                )
            )
        return Claim(key=key, claim_token=token, attempt=1)
    except IntegrityError:
        pass  # Key exists; maybe a stale claim we can take over

    cutoff = now - stale_after
    async with get_transaction() as conn:
        result = await conn.execute(
            update(reminder_dispatches)
            .where(_key_clause(key))
            .where(reminder_dispatches.c.state == LedgerState.claimed)
            .where(reminder_dispatches.c.claimed_at < cutoff)
            .where(reminder_dispatches.c.attempts < max_attempts)
            .values(
                claim_token=token,
                claimed_at=now,
                attempts=reminder_dispatches.c.attempts + 1,
            )
        )
        if result.rowcount != 1:
            logger.debug(f"Claim lost for {key}, already handled")
            return None

        attempts = (
            await conn.execute(
                select(reminder_dispatches.c.attempts).where(_key_clause(key))
            )
        ).scalar_one()

    logger.warning(f"Reclaimed stale dispatch {key} (attempt {attempts})")
    return Claim(key=key, claim_token=token, attempt=attempts)


async def commit(
    claim: Claim,
    outcome: LedgerState,
    *,
    now: datetime,
    results: Iterable[ChannelResult] = (),
    error_message: str | None = None,
) -> bool:
    """
    Record the terminal outcome of a claimed dispatch.

    Per-target results are written to reminder_delivery_log in the same
    transaction.

    Returns:
        True if committed, False if the claim no longer belongs to us
        (it went stale and another invocation took it over).
    """
    if outcome not in (LedgerState.sent, LedgerState.failed):
        raise ValueError(f"Cannot commit a dispatch as {outcome!r}")

    now = ensure_utc(now)
    results = list(results)

    async with get_transaction() as conn:
        result = await conn.execute(
            update(reminder_dispatches)
            .where(_key_clause(claim.key))
            .where(reminder_dispatches.c.state == LedgerState.claimed)
            .where(reminder_dispatches.c.claim_token == claim.claim_token)
            .values(state=outcome, completed_at=now, error_message=error_message)
        )
        if result.rowcount != 1:
            logger.warning(
                f"Could not commit {claim.key} as {outcome.value}: claim was taken over"
            )
            return False

        if results:
            dispatch_id = (
                await conn.execute(
                    select(reminder_dispatches.c.dispatch_id).where(
                        _key_clause(claim.key)
                    )
                )
            ).scalar_one()
            await conn.execute(
                insert(reminder_delivery_log),
                [
                    {
                        "dispatch_id": dispatch_id,
                        "channel": r.target.kind,
                        "destination": r.target.destination,
                        "status": r.status,
                        "attempts": r.attempts,
                        "error_message": r.error,
                        "logged_at": now,
                    }
                    for r in results
                ],
            )

    return True


async def sweep_stale_claims(
    *,
    now: datetime,
    stale_after: timedelta,
    max_attempts: int,
) -> SweepResult:
    """
    Crash recovery, run at the start of each invocation.

    Stale claims that used up their attempts, or whose session has already
    started, are closed as failed. Other stale claims are left in place and
    picked up by try_claim the next time their key is due.
    """
    now = ensure_utc(now)
    cutoff = now - stale_after
    stale = and_(
        reminder_dispatches.c.state == LedgerState.claimed,
        reminder_dispatches.c.claimed_at < cutoff,
    )
    sweep = SweepResult()

    async with get_transaction() as conn:
        exhausted = await conn.execute(
            update(reminder_dispatches)
            .where(stale)
            .where(reminder_dispatches.c.attempts >= max_attempts)
            .values(
                state=LedgerState.failed,
                completed_at=now,
                error_message=f"Claim abandoned after {max_attempts} attempts",
            )
        )
        expired = await conn.execute(
            update(reminder_dispatches)
            .where(stale)
            .where(reminder_dispatches.c.session_scheduled_at < now)
            .values(
                state=LedgerState.failed,
                completed_at=now,
                error_message="Session started before the reminder was delivered",
            )
        )
        sweep.failed = exhausted.rowcount + expired.rowcount

        remaining = await conn.execute(
            select(
                reminder_dispatches.c.session_id,
                reminder_dispatches.c.reminder_type,
                reminder_dispatches.c.attempts,
            ).where(stale)
        )
        for row in remaining.mappings():
            sweep.reclaimable += 1
            logger.warning(
                f"Stale claim on {row['session_id']}/{row['reminder_type'].value} "
                f"(attempt {row['attempts']}), eligible for reclaim"
            )

    if sweep.failed:
        logger.warning(f"Closed {sweep.failed} abandoned claim(s) as failed")
    return sweep


async def purge_expired_entries(*, now: datetime, retention: timedelta) -> int:
    """
    Delete terminal ledger entries (and their delivery log) past retention.

    Returns:
        Number of ledger entries deleted
    """
    horizon = ensure_utc(now) - retention
    expired_ids = select(reminder_dispatches.c.dispatch_id).where(
        reminder_dispatches.c.state != LedgerState.claimed,
        reminder_dispatches.c.created_at < horizon,
    )

    async with get_transaction() as conn:
        await conn.execute(
            delete(reminder_delivery_log).where(
                reminder_delivery_log.c.dispatch_id.in_(expired_ids)
            )
        )
        result = await conn.execute(
            delete(reminder_dispatches).where(
                reminder_dispatches.c.dispatch_id.in_(expired_ids)
            )
        )

    if result.rowcount:
        logger.info(f"Purged {result.rowcount} ledger entries older than {horizon}")
    return result.rowcount


async def get_entry(key: DispatchKey) -> dict | None:
    """Fetch the ledger row for a key, or None."""
    async with get_connection() as conn:
        result = await conn.execute(
            select(reminder_dispatches).where(_key_clause(key))
        )
        row = result.mappings().first()
        return dict(row) if row else None


async def count_entries_by_state() -> dict[LedgerState, int]:
    """Ledger size per state, for the status endpoint."""
    async with get_connection() as conn:
        result = await conn.execute(
            select(reminder_dispatches.c.state, func.count()).group_by(
                reminder_dispatches.c.state
            )
        )
        return {LedgerState(state): count for state, count in result.all()}
