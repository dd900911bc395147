"""
Shopify webhook signature verification.

Shopify signs the raw request body with the app's shared secret
(HMAC-SHA256, base64) and sends it in ``X-Shopify-Hmac-Sha256``.
"""
import base64
import hashlib
import hmac
from typing import Optional

from battle.exceptions import AuthenticationError
from battle.observability import get_logger

logger = get_logger(__name__)


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256 of ``raw_body``."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook(raw_body: bytes, hmac_header: Optional[str], secret: str) -> bool:
    """
    Check a webhook signature in constant time.

    Returns:
        False when the secret or header is missing, or the digest differs
    """
    if not secret or not hmac_header:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode("utf-8"), hmac_header.strip().encode("utf-8"))


def require_valid_signature(raw_body: bytes, hmac_header: Optional[str], secret: str) -> None:
    """
    Raises:
        AuthenticationError: If the signature is missing or wrong
    """
    if not verify_webhook(raw_body, hmac_header, secret):
        logger.warning(
            "Webhook signature rejected",
            extra={"has_header": bool(hmac_header), "body_bytes": len(raw_body)}
        )
        raise AuthenticationError("Invalid webhook signature")
