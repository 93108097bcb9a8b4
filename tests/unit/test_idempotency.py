"""Tests for notification deduplication keys (payment_kernel/utils/idempotency.py)."""

from datetime import datetime, timedelta, timezone

import pytest

from payment_kernel.utils.hashing import canonicalize_json, hash_payload
from payment_kernel.utils.idempotency import (
    arrival_bucket,
    generate_dedup_key,
    normalize_notification_text,
    parse_dedup_key,
)

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestNormalization:
    def test_collapses_whitespace(self):
        assert normalize_notification_text("  Received\n10,000\t Ks  ") == "Received 10,000 Ks"


class TestDedupKey:
    def test_same_text_same_bucket(self):
        a = generate_dedup_key("Received 10,000 Ks", T0, 300)
        b = generate_dedup_key("Received  10,000 Ks ", T0 + timedelta(seconds=30), 300)
        assert a == b

    def test_different_text(self):
        assert generate_dedup_key("Received 10,000 Ks", T0, 300) != generate_dedup_key(
            "Received 10,001 Ks", T0, 300
        )

    def test_different_bucket(self):
        assert generate_dedup_key("Received 10,000 Ks", T0, 300) != generate_dedup_key(
            "Received 10,000 Ks", T0 + timedelta(seconds=300), 300
        )

    def test_parse_round_trip(self):
        key = generate_dedup_key("Received 10,000 Ks", T0, 300)
        digest, bucket = parse_dedup_key(key)
        assert len(digest) == 64
        assert bucket == arrival_bucket(T0, 300)

    @pytest.mark.parametrize("key", ["", "abc", "abc:12", "x" * 64 + ":", "x" * 64 + ":-1"])
    def test_parse_rejects_malformed(self, key):
        with pytest.raises(ValueError):
            parse_dedup_key(key)

    def test_bucket_seconds_must_be_positive(self):
        with pytest.raises(ValueError):
            arrival_bucket(T0, 0)


class TestHashing:
    def test_canonical_json_sorts_keys(self):
        assert canonicalize_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'

    def test_hash_payload_is_order_independent(self):
        assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})
