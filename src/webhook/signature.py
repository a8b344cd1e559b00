"""LINE webhook signature verification.

LINE signs each delivery with base64(HMAC-SHA256(channel_secret, body)).
"""

from __future__ import annotations

import base64
import hashlib
import hmac

from src.webhook.models import WebhookRequest

SIGNATURE_KEY = "x-line-signature"


def compute_signature(channel_secret: str, body: str | bytes) -> str:
    raw = body if isinstance(body, bytes) else body.encode()
    digest = hmac.new(channel_secret.encode(), raw, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def find_signature(request: WebhookRequest) -> str | None:
    """Look up the signature in the query parameters, then the headers."""
    if request.params.get(SIGNATURE_KEY):
        return request.params[SIGNATURE_KEY]
    for name, value in request.headers.items():
        if name.lower() == SIGNATURE_KEY and value:
            return value
    return None


def verify_signature(
    channel_secret: str | None, body: str | bytes, signature: str | None,
) -> bool:
    """Return True if the signature matches the body.

    An empty channel secret disables verification (development bypass).
    Uses constant-time comparison via hmac.compare_digest.
    """
    if not channel_secret:
        return True
    if not signature:
        return False
    expected = compute_signature(channel_secret, body)
    return hmac.compare_digest(signature.encode(), expected.encode())
