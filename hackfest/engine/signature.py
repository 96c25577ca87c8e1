"""
hackfest.engine.signature — Webhook signature verification
============================================================

GitHub signs every delivery with ``X-Hub-Signature: sha1=<hex digest>``,
an HMAC-SHA1 of the raw request body keyed by the shared webhook secret.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Hub-Signature"
SIGNATURE_PREFIX = "sha1="


def compute_signature(body: bytes, secret: str | bytes) -> str:
    """Return the ``sha1=<hex>`` signature GitHub would send for *body*."""
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    digest = hmac.new(key, body, hashlib.sha1).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(body: bytes, signature: str | None, secret: str | bytes) -> bool:
    """Check *signature* against the HMAC of *body*.

    Never raises: a missing or malformed signature, or an empty secret,
    simply fails verification.
    """
    if not signature or not secret:
        return False

    expected = compute_signature(body, secret)
    try:
        presented = signature.encode("ascii")
    except (UnicodeEncodeError, AttributeError):
        return False

    # Constant-time comparison to prevent timing attacks
    return hmac.compare_digest(presented, expected.encode("ascii"))
