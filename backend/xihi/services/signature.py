import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha1="


def sign(secret: bytes, body: bytes) -> str:
    """Return the ``X-Hub-Signature`` value GitHub sends for ``body``."""
    return SIGNATURE_PREFIX + hmac.new(secret, body, hashlib.sha1).hexdigest()


def constant_time_equals(a: bytes, b: bytes) -> bool:
    """
    Compare two byte strings without exiting on the first difference.

    Only the length may short-circuit; every byte pair of equal-length
    inputs is folded into the accumulator before it is tested.
    """
    if len(a) != len(b):
        return False

    diff = 0
    for x, y in zip(a, b):
        diff |= x ^ y
    return diff == 0


def verify_signature(secret: bytes, body: bytes, header: str) -> bool:
    expected = sign(secret, body).encode("ascii")
    try:
        received = header.encode("ascii")
    except UnicodeEncodeError:
        logger.warning("Signature header contains non-ASCII characters")
        return False
    return constant_time_equals(received, expected)
