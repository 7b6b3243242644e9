"""URL builder utilities for reminder templates."""

from core.config import get_frontend_url


def build_session_url(session_id: str) -> str:
    """Build URL to a live class session page."""
    base = get_frontend_url()
    return f"{base}/live-classes/session/{session_id}"
