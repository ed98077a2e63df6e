"""HMAC signature verification for gateway webhooks and checkout callbacks."""

import hashlib
import hmac
import logging
import secrets
from typing import Optional, Union

from .errors import MissingSecret

logger = logging.getLogger(__name__)


def compute_signature(message: Union[bytes, str], secret: str) -> str:
    """Return the hex-encoded HMAC-SHA256 of ``message`` under ``secret``."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    body: bytes,
    signature: Optional[str],
    secret: Optional[str],
) -> bool:
    """Verify a webhook delivery against the raw request body.

    Must be called on the exact bytes received, before any JSON parsing.

    Args:
        body: Raw request body.
        signature: Hex signature claimed by the sender.
        secret: Webhook secret shared with the gateway.

    Returns:
        True only if the signature matches. A mismatch is never an exception.

    Raises:
        MissingSecret: If no webhook secret is configured.
    """
    if not secret:
        raise MissingSecret("Webhook secret is not configured")
    if not signature:
        return False
    expected = compute_signature(body, secret)
    try:
        return secrets.compare_digest(signature.encode("ascii"), expected.encode("ascii"))
    except UnicodeEncodeError:
        return False


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: Optional[str],
    key_secret: Optional[str],
) -> bool:
    """Verify the checkout callback signature over ``order_id|payment_id``.

    Uses plain string equality: the browser callback is less sensitive than
    the server-to-server webhook, which is the authoritative completion path.

    Raises:
        MissingSecret: If the API key secret is not configured.
    """
    if not key_secret:
        raise MissingSecret("Gateway key secret is not configured")
    expected = compute_signature(f"{order_id}|{payment_id}", key_secret)
    return expected == signature
