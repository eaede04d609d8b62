"""
Cryptographic Hashing Utilities — SHA digests for gateway signatures and idempotency keys.
"""
import hashlib
import hmac
from datetime import datetime, timezone


def sha512_hex(value: str) -> str:
    """SHA-512 hex digest of a UTF-8 string (PayU signature format)."""
    return hashlib.sha512(value.encode("utf-8")).hexdigest()


def digests_match(expected: str, received: str | None) -> bool:
    """Constant-time comparison of two hex digests, case-insensitive."""
    if not received:
        return False
    return hmac.compare_digest(expected.lower(), received.strip().lower())


def time_bucket(moment: datetime, width_seconds: int) -> int:
    """Index of the fixed-width time window that ``moment`` falls into.

    Naive datetimes are taken as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp()) // max(width_seconds, 1)


def generate_idempotency_key(user_id: str, course_id: str, bucket: int) -> str:
    """Deterministic SHA-256 key for one purchase intent within one time bucket."""
    data = f"{user_id}|{course_id}|{bucket}".encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def chain_idempotency_key(previous_key: str, previous_transaction_id: str) -> str:
    """Successor key used once the attempt holding ``previous_key`` ended without payment.

    Every retry that sees the same dead attempt derives the same successor,
    so the unique constraint still collapses concurrent retries into one row.
    """
    data = f"{previous_key}|{previous_transaction_id}".encode("utf-8")
    return hashlib.sha256(data).hexdigest()
