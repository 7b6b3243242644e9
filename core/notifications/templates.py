"""Message template loading and rendering."""

import html
from datetime import datetime
from pathlib import Path
from types import MappingProxyType

import yaml

from core.enums import ReminderType
from core.notifications.types import REMINDER_CONFIG, Notification
from core.notifications.urls import build_session_url
from core.sessions import ClassSession
from core.timezone import format_datetime_in_timezone, format_time_until


_templates: dict | None = None


def load_templates() -> dict:
    """
    Load message templates from YAML file.

    Caches templates after first load.
    """
    global _templates
    if _templates is not None:
        return _templates

    yaml_path = Path(__file__).parent / "messages.yaml"
    with open(yaml_path) as f:
        _templates = yaml.safe_load(f)

    return _templates


def render_message(template: str, context: dict) -> str:
    """
    Render a message template with context variables.

    Args:
        template: String with {variable} placeholders
        context: Dict of variable names to values

    Returns:
        Rendered string

    Raises:
        KeyError: If a required variable is missing from context
    """
    return template.format(**context)


def get_message(message_type: str, part: str, context: dict) -> str:
    """
    Get and render one part of a message.

    Args:
        message_type: e.g., "session_reminder_24h"
        part: "subject" or "body"
        context: Variables to substitute

    Returns:
        Rendered message string
    """
    templates = load_templates()
    template = templates[message_type][part]
    return render_message(template, context)


def build_reminder_context(
    session: ClassSession, now: datetime, display_timezone: str
) -> dict:
    """Template variables for a session reminder."""
    if session.session_number is not None:
        session_label = f"Class {session.session_number}"
    else:
        session_label = "Class"
    if session.session_title:
        session_label = f"{session_label}: {session.session_title}"

    return {
        "class_name": session.class_name,
        "session_label": session_label,
        "session_time": format_datetime_in_timezone(
            session.scheduled_at, display_timezone
        ),
        # Actual time left, so a catch-up send never states the wrong lead time
        "time_until": format_time_until(session.scheduled_at - now),
        "session_url": build_session_url(session.session_id),
    }


def escape_context(context: dict) -> dict:
    """HTML-escaped copy of a context, for message bodies."""
    return {key: html.escape(str(value)) for key, value in context.items()}


def render_notification(
    session: ClassSession,
    reminder_type: ReminderType,
    *,
    now: datetime,
    display_timezone: str = "UTC",
) -> Notification:
    """Render the reminder for a session as an immutable Notification."""
    message_type = REMINDER_CONFIG[reminder_type]["message_template"]
    context = build_reminder_context(session, now, display_timezone)

    return Notification(
        session_id=session.session_id,
        reminder_type=reminder_type,
        subject=get_message(message_type, "subject", context),
        body=get_message(message_type, "body", escape_context(context)),
        fields=MappingProxyType(dict(context)),
    )
