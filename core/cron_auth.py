"""Authentication for cron trigger requests (bearer secret or QStash signature)."""

import base64
import hashlib
import hmac
import logging
import os
from urllib.parse import urlsplit

import jwt

from .config import is_production

logger = logging.getLogger(__name__)

QSTASH_ISSUER = "Upstash"
QSTASH_ALGORITHM = "HS256"
CLOCK_SKEW_SECONDS = 10


class CronAuthError(Exception):
    """Raised when a cron request cannot be authenticated."""

    pass


class QStashSignatureError(CronAuthError):
    """Raised when an Upstash-Signature header is invalid."""

    pass


def _body_hash(body: bytes) -> str:
    digest = hashlib.sha256(body).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


def _signing_keys() -> list[str]:
    keys = [
        os.environ.get("QSTASH_CURRENT_SIGNING_KEY"),
        os.environ.get("QSTASH_NEXT_SIGNING_KEY"),
    ]
    return [k for k in keys if k]


def verify_qstash_signature(signature: str, body: bytes, path: str) -> dict:
    """
    Verify a QStash request signature.

    The signature is a JWT (HS256) signed with the current or next signing
    key. Its "sub" claim is the destination URL and its "body" claim the
    base64url SHA-256 of the request body.

    Args:
        signature: Value of the Upstash-Signature header
        body: Raw request body bytes
        path: Path the request was received on

    Returns:
        Decoded claims

    Raises:
        QStashSignatureError: If no key verifies the token, or claims mismatch
    """
    keys = _signing_keys()
    if not keys:
        raise QStashSignatureError("QStash signing keys not configured")

    claims = None
    last_error: Exception | None = None
    for key in keys:
        try:
            claims = jwt.decode(
                signature,
                key,
                algorithms=[QSTASH_ALGORITHM],
                issuer=QSTASH_ISSUER,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "nbf", "iss", "sub"]},
            )
            break
        except jwt.InvalidTokenError as e:
            last_error = e

    if claims is None:
        raise QStashSignatureError(f"Signature verification failed: {last_error}")

    if urlsplit(claims["sub"]).path.rstrip("/") != path.rstrip("/"):
        raise QStashSignatureError("Signature was issued for a different destination")

    expected = str(claims.get("body", "")).rstrip("=")
    if not hmac.compare_digest(expected, _body_hash(body)):
        raise QStashSignatureError("Body hash does not match signature")

    return claims


def authorize_cron_request(
    body: bytes,
    path: str,
    authorization: str | None,
    upstash_signature: str | None,
) -> str:
    """
    Decide whether a cron trigger request may run.

    Accepts "Authorization: Bearer $CRON_SECRET" or a valid QStash
    signature. With no credentials configured at all the endpoint is open
    outside production.

    Returns:
        How the request was authorized: "bearer", "qstash" or "open"

    Raises:
        CronAuthError: If the request is not authorized
    """
    secret = os.environ.get("CRON_SECRET")

    if secret and authorization and hmac.compare_digest(
        authorization, f"Bearer {secret}"
    ):
        return "bearer"

    if upstash_signature and _signing_keys():
        verify_qstash_signature(upstash_signature, body, path)
        return "qstash"

    if not secret and not _signing_keys():
        if is_production():
            raise CronAuthError("No cron credentials configured")
        logger.warning("Cron endpoint called without credentials configured")
        return "open"

    raise CronAuthError("Missing or invalid cron credentials")
