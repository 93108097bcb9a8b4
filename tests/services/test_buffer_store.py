"""
Tests for PaymentBufferStore.

Verifies:
- Buffer creation validates and rounds amounts
- Candidate lookup returns open buffers with the exact amount, oldest first
- mark_verified is a compare-and-set: exactly one VERIFIED per buffer
- mark_ineligible closes a buffer without deleting it
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from payment_kernel.domain.dtos import VerifyStatus
from payment_kernel.exceptions import BufferNotFoundError, InvalidAmountError
from payment_kernel.models.payment_buffer import PaymentBuffer


class TestCreate:
    def test_create_buffer(self, buffer_store, clock):
        buffer = buffer_store.create(Decimal("500000"), order_id="ORD-1", transaction_id="txn882")
        assert buffer.expected_amount == Decimal("500000.00")
        assert buffer.amount_minor == 50_000_000
        assert buffer.currency == "MMK"
        assert buffer.transaction_id == "TXN882"
        assert buffer.created_at == clock.now()
        assert buffer.is_open
        assert not buffer.verified

    def test_string_and_int_amounts(self, buffer_store):
        assert buffer_store.create("12.345", order_id="ORD-1").expected_amount == Decimal("12.35")
        assert buffer_store.create(7, order_id="ORD-2").amount_minor == 700

    @pytest.mark.parametrize(
        "amount", [0, "-5", "0.004", "abc", "NaN", "1" + "0" * 30, "100000000000000000000"]
    )
    def test_invalid_amounts(self, buffer_store, amount):
        with pytest.raises(InvalidAmountError):
            buffer_store.create(amount, order_id="ORD-1")

    def test_float_rejected(self, buffer_store):
        with pytest.raises(InvalidAmountError):
            buffer_store.create(10.5, order_id="ORD-1")

    def test_order_id_required(self, buffer_store):
        with pytest.raises(ValueError):
            buffer_store.create(Decimal("10"), order_id="")

    def test_logs_creation(self, buffer_store, captured_logs):
        buffer = buffer_store.create(Decimal("10"), order_id="ORD-LOG")
        records = [r for r in captured_logs() if r["message"] == "buffer_created"]
        assert records[0]["buffer_id"] == str(buffer.id)
        assert records[0]["amount_minor"] == 1000


class TestCandidates:
    def test_exact_amount_oldest_first(self, buffer_store, clock):
        first = buffer_store.create(Decimal("10000"), order_id="ORD-1")
        clock.advance(60)
        buffer_store.create(Decimal("10001"), order_id="ORD-2")
        clock.advance(60)
        third = buffer_store.create(Decimal("10000"), order_id="ORD-3")

        found = buffer_store.find_unverified_candidates(Decimal("10000.00"))
        assert [b.id for b in found] == [first.id, third.id]

    def test_excludes_verified_and_ineligible(self, buffer_store):
        verified = buffer_store.create(Decimal("10000"), order_id="ORD-1")
        expired = buffer_store.create(Decimal("10000"), order_id="ORD-2")
        open_buffer = buffer_store.create(Decimal("10000"), order_id="ORD-3")
        buffer_store.mark_verified(verified.id, verified.order_id)
        buffer_store.mark_ineligible(expired.id, "expired")

        found = buffer_store.find_unverified_candidates(Decimal("10000"))
        assert [b.id for b in found] == [open_buffer.id]

    def test_matching_window(self, buffer_store, clock):
        old = buffer_store.create(Decimal("10000"), order_id="ORD-OLD")
        clock.advance(3600)
        recent = buffer_store.create(Decimal("10000"), order_id="ORD-NEW")

        found = buffer_store.find_unverified_candidates(
            Decimal("10000"), within_window=timedelta(minutes=30)
        )
        assert [b.id for b in found] == [recent.id]
        assert old.id not in {b.id for b in found}


class TestMarkVerified:
    def test_first_claim_wins(self, buffer_store, clock):
        buffer = buffer_store.create(Decimal("10000"), order_id="ORD-1")
        result = buffer_store.mark_verified(buffer.id, "ORD-1", raw_notification_text="Received 10,000 Ks")
        assert result.status == VerifyStatus.VERIFIED
        assert result.claimed
        assert result.verified_at == clock.now()

        stored = buffer_store.get(buffer.id)
        assert stored.verified
        assert stored.linked_order_id == "ORD-1"
        assert stored.raw_notification_text == "Received 10,000 Ks"

    def test_second_claim_already_verified(self, buffer_store, clock):
        buffer = buffer_store.create(Decimal("10000"), order_id="ORD-1")
        first = buffer_store.mark_verified(buffer.id, "ORD-1", "Received 10,000 Ks")
        clock.advance(600)

        result = buffer_store.mark_verified(buffer.id, "ORD-2", "Received 10,000 Ks again")
        assert result.status == VerifyStatus.ALREADY_VERIFIED
        assert not result.claimed

        stored = buffer_store.get(buffer.id)
        assert stored.linked_order_id == "ORD-1"
        assert stored.verified_at == first.verified_at
        assert stored.raw_notification_text == "Received 10,000 Ks"

    def test_ineligible(self, buffer_store):
        buffer = buffer_store.create(Decimal("10000"), order_id="ORD-1")
        buffer_store.mark_ineligible(buffer.id, "order cancelled")
        result = buffer_store.mark_verified(buffer.id, "ORD-1")
        assert result.status == VerifyStatus.INELIGIBLE
        assert not buffer_store.get(buffer.id).verified

    def test_not_found(self, buffer_store):
        result = buffer_store.mark_verified(uuid4(), "ORD-1")
        assert result.status == VerifyStatus.NOT_FOUND


class TestMarkIneligible:
    def test_marks_and_keeps_row(self, buffer_store, session, clock):
        buffer = buffer_store.create(Decimal("10000"), order_id="ORD-1")
        updated = buffer_store.mark_ineligible(buffer.id, "expired")
        assert not updated.eligible
        assert updated.ineligible_reason == "expired"
        assert updated.ineligible_at == clock.now()
        assert session.get(PaymentBuffer, buffer.id) is not None

    def test_verified_buffer_unchanged(self, buffer_store):
        buffer = buffer_store.create(Decimal("10000"), order_id="ORD-1")
        buffer_store.mark_verified(buffer.id, "ORD-1")
        updated = buffer_store.mark_ineligible(buffer.id, "expired")
        assert updated.verified
        assert updated.eligible
        assert updated.ineligible_reason is None

    def test_unknown_buffer(self, buffer_store):
        with pytest.raises(BufferNotFoundError):
            buffer_store.mark_ineligible(uuid4(), "expired")
