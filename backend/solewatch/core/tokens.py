"""HMAC-signed tokens for email manage/cancel links.

Token format::

    base64url(json({"email": ..., "exp": ...})) + "." + base64url(hmac_sha256(payload))

Both halves use unpadded URL-safe base64. ``exp`` is epoch milliseconds.
Verification never raises on malformed input; it returns ``None`` instead so
callers can treat every bad link the same way.
"""

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional

import structlog

from solewatch.core.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _signature(payload: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def _now_ms() -> int:
    return int(time.time() * 1000)


def sign_token(payload: Dict[str, Any], secret: str) -> str:
    """Sign a payload dict into a link token.

    Raises:
        ConfigurationError: If no signing secret is configured
    """
    if not secret:
        raise ConfigurationError("Missing ALERTS_LINK_SECRET")
    encoded = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    return f"{encoded}.{_signature(encoded, secret)}"


def create_manage_token(
    email: str, secret: str, ttl_days: int = 30, now_ms: Optional[int] = None
) -> str:
    """Create a manage-alerts token for an email address."""
    issued = _now_ms() if now_ms is None else now_ms
    return sign_token(
        {"email": email.strip().lower(), "exp": issued + ttl_days * DAY_MS},
        secret,
    )


def verify_token(
    token: Any, secret: str, now_ms: Optional[int] = None
) -> Optional[Dict[str, Any]]:
    """Verify a link token.

    Args:
        token: Token string from the link (any type is tolerated)
        secret: Signing secret
        now_ms: Current time in epoch milliseconds (defaults to wall clock)

    Returns:
        The decoded payload ``{"email", "exp"}``, or None when the token is
        malformed, has a bad signature, or is expired

    Raises:
        ConfigurationError: If no signing secret is configured
    """
    if not secret:
        raise ConfigurationError("Missing ALERTS_LINK_SECRET")
    if not isinstance(token, str) or not token.isascii() or token.count(".") != 1:
        return None

    payload, sig = token.split(".")
    if not payload or not sig:
        return None

    expected = _signature(payload, secret)
    if not hmac.compare_digest(sig.encode("ascii", "replace"), expected.encode("ascii")):
        return None

    try:
        data = json.loads(_b64url_decode(payload).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.debug("token_payload_undecodable")
        return None

    if not isinstance(data, dict) or not data.get("email") or not data.get("exp"):
        return None

    try:
        exp = float(data["exp"])
    except (TypeError, ValueError):
        return None

    current = _now_ms() if now_ms is None else now_ms
    if current > exp:
        return None

    return data
