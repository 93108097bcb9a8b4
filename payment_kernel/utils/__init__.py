"""Utility functions for the payment kernel."""

from payment_kernel.utils.hashing import canonicalize_json, hash_payload, hash_text
from payment_kernel.utils.idempotency import (
    generate_dedup_key,
    normalize_notification_text,
    parse_dedup_key,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_text",
    "generate_dedup_key",
    "normalize_notification_text",
    "parse_dedup_key",
]
