"""
Class session reminders over Telegram and email.

Public API:
    run_reminder_dispatch() - One cron cycle: evaluate, claim, send, commit
    due_reminder_types(now, session) - Which reminders are due (pure)
    send_to_targets(notification, targets) - Fan-out with per-target retries
    register_reminder_schedule(url, minutes) - Replace the QStash schedule
    init_scheduler(minutes) / shutdown_scheduler() - Local interval trigger
"""

from .dispatcher import send_to_targets
from .orchestrator import DispatchReport, UnitOutcome, run_reminder_dispatch
from .registrar import register_reminder_schedule
from .scheduler import init_scheduler, shutdown_scheduler
from .windows import due_reminder_types

__all__ = [
    "run_reminder_dispatch",
    "DispatchReport",
    "UnitOutcome",
    "due_reminder_types",
    "send_to_targets",
    "register_reminder_schedule",
    "init_scheduler",
    "shutdown_scheduler",
]
