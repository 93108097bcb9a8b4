"""
Deduplication key generation for inbound notifications.

The same notification delivered twice (webhook retry, SMS forwarded twice)
must produce one log entry and at most one claim.  The key combines the
SHA-256 of the whitespace-normalized text with an arrival-time bucket, and
is stored on NotificationLogEntry.dedup_key under a unique constraint.

Two deliveries straddling a bucket boundary get different keys; the
buffer claim (ALREADY_VERIFIED) is the backstop for that case.
"""

import re
from datetime import datetime

from payment_kernel.utils.hashing import hash_text

_WHITESPACE = re.compile(r"\s+")


def normalize_notification_text(raw_text: str) -> str:
    """Collapse runs of whitespace and strip the ends."""
    return _WHITESPACE.sub(" ", raw_text).strip()


def arrival_bucket(received_at: datetime, bucket_seconds: int) -> int:
    """Index of the fixed-width time bucket ``received_at`` falls in."""
    if bucket_seconds <= 0:
        raise ValueError(f"bucket_seconds must be positive, got {bucket_seconds}")
    return int(received_at.timestamp()) // bucket_seconds


def generate_dedup_key(raw_text: str, received_at: datetime, bucket_seconds: int) -> str:
    """
    Generate the deduplication key for a notification.

    Format: <sha256 of normalized text>:<arrival bucket>

    Example:
        >>> generate_dedup_key("Received 10,000 Ks", t, 300)
        "3f1c...e9:5683520"
    """
    digest = hash_text(normalize_notification_text(raw_text))
    return f"{digest}:{arrival_bucket(received_at, bucket_seconds)}"


def parse_dedup_key(key: str) -> tuple[str, int]:
    """
    Parse a dedup key into (text digest, bucket).

    Raises:
        ValueError: If key format is invalid.
    """
    digest, sep, bucket = key.partition(":")
    if not sep or len(digest) != 64 or not bucket.isdigit():
        raise ValueError(f"Invalid dedup key format: {key}")
    return digest, int(bucket)
