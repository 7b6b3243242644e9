"""SendGrid email delivery channel."""

import asyncio
import html
import os
import re

from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.notifications.types import ChannelTarget, Notification, SendResult


SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY")
FROM_EMAIL = os.environ.get("FROM_EMAIL", "noreply@thekingezekielacademy.com")
FROM_NAME = os.environ.get("FROM_NAME", "King Ezekiel Academy")

# Telegram HTML links: <a href="url">text</a>
HTML_LINK_PATTERN = re.compile(r'<a href="([^"]*)">(.*?)</a>', re.DOTALL)
HTML_TAG_PATTERN = re.compile(r"<[^>]+>")

_client: SendGridAPIClient | None = None


def body_to_html(text: str) -> str:
    """
    Wrap a Telegram HTML message body in a basic HTML document.

    The body's tags (<b>, <a href>) and escaped entities are valid HTML
    as they stand; only line breaks need converting.
    """
    html_body = text.replace("\n", "<br>\n")

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.5; color: #333;">
{html_body}
</body>
</html>"""


def body_to_plain_text(text: str) -> str:
    """
    Convert a Telegram HTML message body to plain text.

    Converts <a href="url">text</a> to text (url), drops other tags and
    unescapes entities.
    """
    text = HTML_LINK_PATTERN.sub(r"\2 (\1)", text)
    text = HTML_TAG_PATTERN.sub("", text)
    return html.unescape(text)


def _get_sendgrid_client() -> SendGridAPIClient | None:
    """Get or create SendGrid client singleton."""
    global _client
    if _client is None and SENDGRID_API_KEY:
        _client = SendGridAPIClient(SENDGRID_API_KEY)
    return _client


def _retry_after_from(error: HTTPError) -> float | None:
    headers = getattr(error, "headers", None) or {}
    value = headers.get("Retry-After") if hasattr(headers, "get") else None
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def send_email(to_email: str, subject: str, body: str) -> SendResult:
    """
    Send an email via SendGrid.

    The body is Telegram HTML (<b>, <a href>). Both plain text and HTML
    versions are sent.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        body: Email body in Telegram HTML

    Returns:
        SendResult - 429 and 5xx are transient, other rejections permanent
    """
    client = _get_sendgrid_client()
    if not client:
        return SendResult.permanent("SendGrid not configured (SENDGRID_API_KEY not set)")

    message = Mail(
        from_email=(FROM_EMAIL, FROM_NAME),
        to_emails=to_email,
        subject=subject,
        plain_text_content=body_to_plain_text(body),
        html_content=body_to_html(body),
    )

    try:
        response = client.send(message)
    except HTTPError as e:
        status = getattr(e, "status_code", None)
        error = f"SendGrid HTTP {status}: {getattr(e, 'reason', e)}"
        if status == 429 or (status is not None and status >= 500):
            return SendResult.transient(error, _retry_after_from(e))
        return SendResult.permanent(error)
    except OSError as e:
        # Connection resets, DNS failures, socket timeouts
        return SendResult.transient(f"SendGrid request failed: {e}")

    if response.status_code in (200, 201, 202):
        return SendResult.success()
    return SendResult.transient(f"SendGrid returned HTTP {response.status_code}")


async def send_email_message(
    target: ChannelTarget, notification: Notification
) -> SendResult:
    """Send a reminder email to one recipient without blocking the event loop."""
    return await asyncio.to_thread(
        send_email,
        to_email=target.destination,
        subject=notification.subject,
        body=notification.body,
    )
