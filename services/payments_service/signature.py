"""Paystack webhook signature verification."""

import hashlib
import hmac

from libs.common.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"


def compute_paystack_signature(payload: bytes | str, secret: str) -> str:
    """Hex-encoded HMAC-SHA512 of the raw body, keyed by the secret key."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()


def verify_paystack_signature(
    payload: bytes | str, signature: str, secret: str
) -> bool:
    """
    Check ``signature`` against the expected digest in constant time.

    The comparison is on the lowercase hex text Paystack sends, so a signature
    differing only in letter case does not verify. Never raises: malformed
    input, a missing secret or any other error counts as a failed verification.
    """
    try:
        expected = compute_paystack_signature(payload, secret)
        return hmac.compare_digest(expected, signature)
    except Exception as e:
        logger.error(
            "webhook.verify_signature.error",
            extra={"extra_fields": {"error": str(e)}},
        )
        return False
