"""
PayOS Webhook Signature Verification
====================================

Outbound payment-request signatures are produced by the ``payos`` SDK
(see ``client.py``). This module covers the inbound side only: the
signature header carries the hex HMAC-SHA256 digest of the raw request
body, keyed with the merchant checksum key. Verification runs on the
exact bytes received, before any JSON parsing, so a re-serialised body
can never pass for the original.

Author: Lingua Development Team
Date: 2025-10-02
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional

from django.conf import settings

logger = logging.getLogger(__name__)


def _digest(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class SignatureVerifier:
    """
    Validates that an inbound webhook body was produced by PayOS.

    Example:
        >>> verifier = SignatureVerifier(secret="checksum-key")
        >>> verifier.verify(request.body, request.headers.get("X-PayOS-Signature"))
        True
    """

    def __init__(self, secret: Optional[str] = None) -> None:
        self.secret = secret if secret is not None else settings.PAYOS_CHECKSUM_KEY

    def expected_signature(self, raw_body: bytes) -> str:
        return _digest(self.secret, raw_body)

    def verify(self, raw_body: bytes, signature_header: Optional[str]) -> bool:
        """
        Check ``signature_header`` against the HMAC of ``raw_body``.

        Returns False for a missing or garbled header and for an
        unconfigured secret instead of raising, so callers have a single
        rejection path.
        """
        if not self.secret:
            logger.error("Webhook rejected: PAYOS_CHECKSUM_KEY is not configured.")
            return False

        if not signature_header or not signature_header.strip():
            logger.warning("Webhook rejected: signature header missing.")
            return False

        if isinstance(raw_body, str):
            raw_body = raw_body.encode("utf-8")

        expected = self.expected_signature(raw_body or b"").encode("ascii")
        # compare_digest only accepts ASCII str, so compare bytes
        received = signature_header.strip().lower().encode("utf-8", "replace")
        valid = hmac.compare_digest(expected, received)
        if not valid:
            logger.warning("Webhook rejected: signature mismatch.")
        return valid


def get_signature_verifier() -> SignatureVerifier:
    """Return a verifier bound to the currently configured checksum key."""
    return SignatureVerifier()
