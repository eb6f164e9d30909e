"""Security utilities for caller tokens and webhook signatures.

WHAT:
    - JWT helpers: callers authenticate with an HS256 token whose `sub` claim
      is the local user id.
    - Webhook helper: LemonSqueezy signs every delivery with
      hex(HMAC-SHA256(signing_secret, raw_body)) in the `X-Signature` header.

WHY:
    Keeps all cryptographic checks in one place so routers only deal with
    request parsing and persistence.

REFERENCES:
    - https://docs.lemonsqueezy.com/help/webhooks#signing-requests
    - app/deps.py::get_current_user (token consumer)
    - app/routers/lemonsqueezy_webhooks.py (signature consumer)
"""

import hashlib
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from app.config import get_settings


ALGORITHM = "HS256"
JWT_EXPIRES_MINUTES = 10080

logger = logging.getLogger(__name__)


def _jwt_secret() -> str:
    secret = get_settings().JWT_SECRET
    if not secret:
        raise RuntimeError("JWT_SECRET is not set. Ensure backend/.env is created or env var is exported.")
    return secret


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    """Create a signed JWT for the given subject (the user id)."""
    if expires_minutes is None:
        expires_minutes = JWT_EXPIRES_MINUTES
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes)
    to_encode: Dict[str, Any] = {"sub": subject, "iat": int(now.timestamp()), "exp": int(expire.timestamp())}
    return jwt.encode(to_encode, _jwt_secret(), algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT, returning its payload.

    Raises jose.JWTError on failure.
    """
    return jwt.decode(token, _jwt_secret(), algorithms=[ALGORITHM])


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 digest LemonSqueezy sends for `raw_body`."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Verify a LemonSqueezy webhook signature.

    Args:
        raw_body: Raw request body bytes, exactly as received
        signature: `X-Signature` header value
        secret: Webhook signing secret configured in the LemonSqueezy dashboard

    Returns:
        True if signature is valid, False otherwise (including missing secret)
    """
    if not secret:
        logger.error("[LEMONSQUEEZY_WEBHOOK] LEMONSQUEEZY_WEBHOOK_SECRET not configured")
        return False

    if not signature:
        logger.warning("[LEMONSQUEEZY_WEBHOOK] Missing signature header")
        return False

    expected = compute_webhook_signature(raw_body, secret)

    # Constant-time comparison on bytes; str comparison raises on non-ASCII header values
    is_valid = hmac.compare_digest(
        expected.encode("ascii"),
        signature.encode("utf-8", "surrogateescape"),
    )
    if not is_valid:
        logger.warning("[LEMONSQUEEZY_WEBHOOK] Invalid HMAC signature")
    return is_valid

