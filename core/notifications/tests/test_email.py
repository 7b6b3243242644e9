"""Tests for email channel."""

from unittest.mock import patch, MagicMock

import pytest
from python_http_client.exceptions import HTTPError

from core.enums import ChannelKind, DeliveryStatus, ReminderType
from core.notifications.channels.email import (
    send_email,
    send_email_message,
    body_to_html,
    body_to_plain_text,
)
from core.notifications.types import ChannelTarget, Notification


def http_error(status_code, headers=None):
    return HTTPError(status_code, "reason", b"{}", headers or {})


class TestSendEmail:
    @patch("core.notifications.channels.email._get_sendgrid_client")
    def test_sends_email_via_sendgrid(self, mock_get_client):
        mock_client = MagicMock()
        mock_get_client.return_value = mock_client
        mock_response = MagicMock()
        mock_response.status_code = 202
        mock_client.send.return_value = mock_response

        result = send_email(
            to_email="alice@example.com",
            subject="Test Subject",
            body="Test body",
        )

        assert result.ok
        mock_client.send.assert_called_once()

    @patch("core.notifications.channels.email._get_sendgrid_client")
    def test_returns_permanent_when_not_configured(self, mock_get_client):
        mock_get_client.return_value = None

        result = send_email("alice@example.com", "Subject", "Body")

        assert result.status == DeliveryStatus.permanent_failure
        assert "SENDGRID_API_KEY" in result.error

    @patch("core.notifications.channels.email._get_sendgrid_client")
    def test_bad_request_is_permanent(self, mock_get_client):
        mock_client = MagicMock()
        mock_get_client.return_value = mock_client
        mock_client.send.side_effect = http_error(400)

        result = send_email("not-an-address", "Subject", "Body")

        assert result.status == DeliveryStatus.permanent_failure
        assert "400" in result.error

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    @patch("core.notifications.channels.email._get_sendgrid_client")
    def test_rate_limit_and_server_errors_are_transient(
        self, mock_get_client, status_code
    ):
        mock_client = MagicMock()
        mock_get_client.return_value = mock_client
        mock_client.send.side_effect = http_error(status_code, {"Retry-After": "12"})

        result = send_email("alice@example.com", "Subject", "Body")

        assert result.status == DeliveryStatus.transient_failure
        assert result.retry_after == 12.0

    @patch("core.notifications.channels.email._get_sendgrid_client")
    def test_connection_error_is_transient(self, mock_get_client):
        mock_client = MagicMock()
        mock_get_client.return_value = mock_client
        mock_client.send.side_effect = ConnectionResetError("reset by peer")

        result = send_email("alice@example.com", "Subject", "Body")

        assert result.status == DeliveryStatus.transient_failure

    @patch("core.notifications.channels.email._get_sendgrid_client")
    def test_sends_both_plain_and_html(self, mock_get_client):
        mock_client = MagicMock()
        mock_get_client.return_value = mock_client
        mock_client.send.return_value = MagicMock(status_code=202)

        send_email(
            "alice@example.com",
            "Subject",
            '<b>Class</b> starts soon. <a href="https://example.com/live">Join</a>',
        )

        mail = mock_client.send.call_args[0][0].get()
        contents = {c["type"]: c["value"] for c in mail["content"]}
        assert "Class starts soon. Join (https://example.com/live)" in contents["text/plain"]
        assert '<a href="https://example.com/live">Join</a>' in contents["text/html"]


class TestSendEmailMessage:
    @pytest.mark.asyncio
    async def test_sends_notification_to_target(self):
        target = ChannelTarget(ChannelKind.email, "team@example.com")
        notification = Notification(
            session_id="S1",
            reminder_type=ReminderType.reminder_24h,
            subject="Reminder",
            body="Body",
        )

        with patch("core.notifications.channels.email.send_email") as mock_send:
            mock_send.return_value = MagicMock(ok=True)
            await send_email_message(target, notification)

        mock_send.assert_called_once_with(
            to_email="team@example.com", subject="Reminder", body="Body"
        )


class TestBodyToHtml:
    def test_keeps_links_and_bold(self):
        text = '<b>Foundations of Faith</b>: <a href="https://example.com">join</a>'
        result = body_to_html(text)
        assert '<a href="https://example.com">join</a>' in result
        assert "<b>Foundations of Faith</b>" in result

    def test_preserves_line_breaks(self):
        text = "Line 1\nLine 2"
        result = body_to_html(text)
        assert "Line 1<br>" in result
        assert "Line 2" in result

    def test_wraps_in_html_structure(self):
        result = body_to_html("Hello")
        assert "<!DOCTYPE html>" in result
        assert "<body" in result


class TestBodyToPlainText:
    def test_converts_link_to_plain_text(self):
        text = 'Click <a href="https://example.com">here</a> to continue.'
        result = body_to_plain_text(text)
        assert result == "Click here (https://example.com) to continue."

    def test_strips_bold_tags(self):
        assert body_to_plain_text("<b>Bold</b> text") == "Bold text"

    def test_unescapes_entities(self):
        text = "<b>R&amp;D &lt;101&gt;</b> with *args and Web_Dev"
        assert body_to_plain_text(text) == "R&D <101> with *args and Web_Dev"

    def test_preserves_text_without_markup(self):
        text = "No links here."
        assert body_to_plain_text(text) == text
