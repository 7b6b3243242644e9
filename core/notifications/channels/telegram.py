"""Telegram Bot API delivery channel (group and public channel broadcasts)."""

import logging
import os

import httpx

from core.notifications.types import ChannelTarget, Notification, SendResult

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = os.environ.get("TELEGRAM_API_URL", "https://api.telegram.org")

# Rejections that will not change on retry: bad request/chat id, bad token,
# bot removed from the chat, unknown chat
PERMANENT_STATUS_CODES = {400, 401, 403, 404}

_client: httpx.AsyncClient | None = None


def _get_bot_token() -> str | None:
    return os.environ.get("TELEGRAM_BOT_TOKEN")


def _get_client() -> httpx.AsyncClient:
    """Get or create the shared HTTP client."""
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(base_url=TELEGRAM_API_URL, timeout=10.0)
    return _client


async def close_client() -> None:
    """Close the shared HTTP client. Call on shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _describe(payload: dict, response: httpx.Response) -> str:
    description = payload.get("description") if isinstance(payload, dict) else None
    return f"HTTP {response.status_code}: {description or response.reason_phrase}"


async def send_telegram_message(
    target: ChannelTarget,
    notification: Notification,
    client: httpx.AsyncClient | None = None,
) -> SendResult:
    """
    Post a reminder to a Telegram group or channel.

    Args:
        target: Group chat id (e.g. "-1001234567890") or channel ("@name")
        notification: Rendered reminder
        client: Optional HTTP client (defaults to the shared one)

    Returns:
        SendResult - 429 carries Telegram's retry_after hint
    """
    token = _get_bot_token()
    if not token:
        return SendResult.permanent("TELEGRAM_BOT_TOKEN not configured")

    client = client or _get_client()

    try:
        response = await client.post(
            f"/bot{token}/sendMessage",
            json={
                "chat_id": target.destination,
                "text": notification.body,
                "parse_mode": "HTML",
                "disable_web_page_preview": False,
            },
        )
    except httpx.TimeoutException:
        return SendResult.transient("Telegram request timed out")
    except httpx.HTTPError as e:
        return SendResult.transient(f"Telegram request failed: {e}")

    try:
        payload = response.json()
    except ValueError:
        payload = {}

    if response.status_code == 200 and payload.get("ok"):
        return SendResult.success()

    error = _describe(payload, response)

    if response.status_code == 429:
        retry_after = (payload.get("parameters") or {}).get("retry_after")
        return SendResult.transient(
            error, float(retry_after) if retry_after is not None else None
        )

    if response.status_code in PERMANENT_STATUS_CODES:
        return SendResult.permanent(error)

    return SendResult.transient(error)
