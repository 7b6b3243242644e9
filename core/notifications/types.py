"""
Type definitions for reminder dispatch.

Reminder types, dispatch keys, rendered notifications and channel
targets/results shared by the evaluator, ledger, dispatcher and
orchestrator.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping

from core.config import ReminderSettings
from core.enums import ChannelKind, DeliveryStatus, ReminderType


# =============================================================================
# Reminder configuration - SINGLE SOURCE OF TRUTH
# =============================================================================

REMINDER_CONFIG = {
    ReminderType.reminder_24h: {
        "lead_time": timedelta(hours=24),
        "message_template": "session_reminder_24h",
    },
    ReminderType.reminder_3h: {
        "lead_time": timedelta(hours=3),
        "message_template": "session_reminder_3h",
    },
    ReminderType.reminder_30m: {
        "lead_time": timedelta(minutes=30),
        "message_template": "session_reminder_30m",
    },
}

ALL_REMINDER_TYPES: tuple[ReminderType, ...] = tuple(REMINDER_CONFIG)


def lead_time(reminder_type: ReminderType) -> timedelta:
    """How long before a session's start this reminder fires."""
    return REMINDER_CONFIG[reminder_type]["lead_time"]


@dataclass(frozen=True)
class DispatchKey:
    """The idempotency unit: one reminder type for one session."""

    session_id: str
    reminder_type: ReminderType

    def __str__(self) -> str:
        return f"{self.session_id}/{self.reminder_type.value}"


@dataclass(frozen=True)
class Notification:
    """A rendered, channel-agnostic reminder message."""

    session_id: str
    reminder_type: ReminderType
    subject: str
    body: str  # Telegram HTML: <b>, <a href>, escaped values
    fields: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def key(self) -> DispatchKey:
        return DispatchKey(self.session_id, self.reminder_type)


@dataclass(frozen=True)
class ChannelTarget:
    """One configured delivery destination."""

    kind: ChannelKind
    destination: str  # Telegram chat id / @channel, or an email address

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.destination}"


@dataclass(frozen=True)
class SendResult:
    """Outcome of a single provider send attempt."""

    status: DeliveryStatus
    error: str | None = None
    retry_after: float | None = None  # Provider hint, seconds

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.success

    @classmethod
    def success(cls) -> "SendResult":
        return cls(DeliveryStatus.success)

    @classmethod
    def transient(cls, error: str, retry_after: float | None = None) -> "SendResult":
        return cls(DeliveryStatus.transient_failure, error, retry_after)

    @classmethod
    def permanent(cls, error: str) -> "SendResult":
        return cls(DeliveryStatus.permanent_failure, error)


@dataclass(frozen=True)
class ChannelResult:
    """Final outcome for one target after the dispatcher's retries."""

    target: ChannelTarget
    status: DeliveryStatus
    attempts: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.success


def build_channel_targets(settings: ReminderSettings) -> list[ChannelTarget]:
    """
    Expand configured destinations into independent channel targets.

    Order is groups, then channels, then email recipients.
    """
    targets = [
        ChannelTarget(ChannelKind.telegram_group, chat_id)
        for chat_id in settings.telegram_group_ids
    ]
    targets += [
        ChannelTarget(ChannelKind.telegram_channel, chat_id)
        for chat_id in settings.telegram_channel_ids
    ]
    targets += [
        ChannelTarget(ChannelKind.email, address)
        for address in settings.email_recipients
    ]
    return targets
