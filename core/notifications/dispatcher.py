"""
Notification dispatcher - fans one reminder out to every channel target.

Targets are sent concurrently with bounded parallelism. Each target is
isolated: its retries, timeouts and failures never delay or cancel another
target. The notification counts as delivered if any target succeeded.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Mapping

from core.enums import ChannelKind, DeliveryStatus, LedgerState
from core.notifications.channels.email import send_email_message
from core.notifications.channels.telegram import send_telegram_message
from core.notifications.scheduler import get_retry_delay
from core.notifications.types import (
    ChannelResult,
    ChannelTarget,
    Notification,
    SendResult,
)

logger = logging.getLogger(__name__)

Sender = Callable[[ChannelTarget, Notification], Awaitable[SendResult]]

MAX_BACKOFF_SECONDS = 30.0


def default_senders() -> dict[ChannelKind, Sender]:
    """Provider send function for each channel kind."""
    return {
        ChannelKind.telegram_group: send_telegram_message,
        ChannelKind.telegram_channel: send_telegram_message,
        ChannelKind.email: send_email_message,
    }


async def _attempt(
    sender: Sender,
    target: ChannelTarget,
    notification: Notification,
    send_timeout: float,
) -> SendResult:
    try:
        return await asyncio.wait_for(sender(target, notification), send_timeout)
    except asyncio.TimeoutError:
        return SendResult.transient(f"Send timed out after {send_timeout:g}s")
    except Exception as e:
        # Contained to this target; _deliver logs the final failure once
        logger.debug(f"Unexpected error sending to {target}", exc_info=True)
        return SendResult.transient(f"{type(e).__name__}: {e}")


async def _deliver(
    sender: Sender,
    target: ChannelTarget,
    notification: Notification,
    semaphore: asyncio.Semaphore,
    max_attempts: int,
    send_timeout: float,
    max_backoff: float,
) -> ChannelResult:
    """Send to one target, retrying transient failures with backoff."""
    attempt = 0
    while True:
        attempt += 1
        # Hold a slot only while sending, never while backing off
        async with semaphore:
            result = await _attempt(sender, target, notification, send_timeout)

        if result.ok:
            return ChannelResult(target, DeliveryStatus.success, attempt)

        if result.status == DeliveryStatus.permanent_failure or attempt >= max_attempts:
            logger.warning(
                f"Reminder {notification.key} not delivered to {target} "
                f"after {attempt} attempt(s): {result.error}"
            )
            return ChannelResult(target, result.status, attempt, result.error)

        if result.retry_after and result.retry_after > max_backoff:
            # A retry before the provider allows it would be rejected again
            error = (
                f"{result.error} (retry after {result.retry_after:g}s exceeds "
                f"max backoff {max_backoff:g}s)"
            )
            logger.warning(
                f"Reminder {notification.key} not delivered to {target} "
                f"after {attempt} attempt(s): {error}"
            )
            return ChannelResult(target, result.status, attempt, error)

        delay = get_retry_delay(attempt - 1, cap=max_backoff)
        if result.retry_after:
            delay = max(delay, result.retry_after)
        logger.info(
            f"Transient failure sending {notification.key} to {target} "
            f"({result.error}), retrying in {delay:.1f}s"
        )
        await asyncio.sleep(delay)


async def send_to_targets(
    notification: Notification,
    targets: Iterable[ChannelTarget],
    *,
    max_parallel: int = 4,
    max_attempts: int = 3,
    send_timeout: float = 10.0,
    max_backoff: float = MAX_BACKOFF_SECONDS,
    senders: Mapping[ChannelKind, Sender] | None = None,
) -> list[ChannelResult]:
    """
    Deliver a notification to every target concurrently.

    Args:
        notification: Rendered reminder
        targets: Configured destinations
        max_parallel: Sends in flight at once (provider rate limits)
        max_attempts: Attempts per target before giving up on transient errors
        send_timeout: Seconds before a single send counts as a transient failure
        max_backoff: Upper bound on the wait between attempts; a longer
            retry-after hint ends retries for that target
        senders: Override provider functions per channel kind

    Returns:
        One ChannelResult per target, in target order
    """
    senders = senders if senders is not None else default_senders()
    semaphore = asyncio.Semaphore(max_parallel)

    async def run(target: ChannelTarget) -> ChannelResult:
        sender = senders.get(target.kind)
        if sender is None:
            logger.warning(f"No sender configured for {target.kind.value}, skipping {target}")
            return ChannelResult(
                target, DeliveryStatus.permanent_failure, 0, "No sender for channel kind"
            )
        return await _deliver(
            sender,
            target,
            notification,
            semaphore,
            max_attempts,
            send_timeout,
            max_backoff,
        )

    return list(await asyncio.gather(*(run(t) for t in targets)))


def overall_outcome(results: Iterable[ChannelResult]) -> LedgerState:
    """Sent if at least one target got the reminder, otherwise failed."""
    return (
        LedgerState.sent if any(r.ok for r in results) else LedgerState.failed
    )


def summarize_failures(results: Iterable[ChannelResult]) -> str | None:
    """One-line summary of failed targets for the ledger, or None."""
    results = list(results)
    failed = [r for r in results if not r.ok]
    if not results:
        return "No channel targets configured"
    if not failed:
        return None
    details = "; ".join(f"{r.target}: {r.error}" for r in failed)
    return f"{len(failed)}/{len(results)} target(s) failed: {details}"
