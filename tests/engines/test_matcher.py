"""
Tests for the payment matcher cascade (payment_engines/matching).

Verifies:
- amount -> transaction id -> sender name -> age ordering
- Unmatched when no open buffer has the amount
- Ambiguous results list indistinguishable buffers oldest first
- Closed (verified / ineligible) buffers are never candidates
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from payment_engines.matching import (
    MatchingPolicy,
    MatchOutcome,
    MatchResult,
    MatchRule,
    PaymentMatcher,
    normalize_sender_name,
    normalize_transaction_id,
)
from payment_kernel.domain.dtos import NotificationCandidate, PaymentBufferDTO

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_buffer(
    amount="10000",
    minutes_before=10,
    transaction_id=None,
    sender_name=None,
    verified=False,
    eligible=True,
    currency="MMK",
) -> PaymentBufferDTO:
    value = Decimal(amount).quantize(Decimal("0.01"))
    return PaymentBufferDTO(
        id=uuid4(),
        expected_amount=value,
        amount_minor=int(value * 100),
        currency=currency,
        minor_unit_exponent=2,
        order_id=f"ORD-{uuid4().hex[:6]}",
        created_at=T0 - timedelta(minutes=minutes_before),
        verified=verified,
        eligible=eligible,
        transaction_id=transaction_id,
        sender_name=sender_name,
    )


def make_candidate(
    amount="10000",
    transaction_id=None,
    sender_name=None,
    received_at=T0,
) -> NotificationCandidate:
    value = Decimal(amount).quantize(Decimal("0.01"))
    return NotificationCandidate(
        amount=value,
        amount_minor=int(value * 100),
        currency="MMK",
        decimal_places=2,
        raw_text=f"Received {amount} Ks",
        received_at=received_at,
        transaction_id=transaction_id,
        sender_name=sender_name,
    )


@pytest.fixture
def matcher():
    return PaymentMatcher()


class TestAmountStep:
    def test_no_buffers(self, matcher):
        result = matcher.match(candidate=make_candidate(), buffers=[])
        assert result.outcome == MatchOutcome.UNMATCHED
        assert result.rule == MatchRule.NO_CANDIDATE

    def test_amount_must_match_exactly(self, matcher):
        buffers = [make_buffer("10000.01"), make_buffer("9999.99")]
        result = matcher.match(candidate=make_candidate("10000"), buffers=buffers)
        assert result.outcome == MatchOutcome.UNMATCHED

    def test_single_candidate(self, matcher):
        target = make_buffer("500000")
        result = matcher.match(
            candidate=make_candidate("500000", sender_name="KO AUNG"),
            buffers=[target, make_buffer("10000")],
        )
        assert result.is_matched
        assert result.buffer_id == target.id
        assert result.rule == MatchRule.SINGLE_CANDIDATE

    def test_closed_buffers_ignored(self, matcher):
        open_buffer = make_buffer()
        buffers = [
            make_buffer(verified=True),
            make_buffer(eligible=False),
            open_buffer,
        ]
        result = matcher.match(candidate=make_candidate(), buffers=buffers)
        assert result.buffer_id == open_buffer.id
        assert result.rule == MatchRule.SINGLE_CANDIDATE

    def test_currency_must_match(self, matcher):
        result = matcher.match(
            candidate=make_candidate(), buffers=[make_buffer(currency="USD")]
        )
        assert result.outcome == MatchOutcome.UNMATCHED


class TestTransactionIdStep:
    def test_transaction_id_decides(self, matcher):
        target = make_buffer(transaction_id="TXN-882001")
        buffers = [make_buffer(transaction_id="TXN999999"), target, make_buffer()]
        result = matcher.match(
            candidate=make_candidate(transaction_id="txn882001"), buffers=buffers
        )
        assert result.buffer_id == target.id
        assert result.rule == MatchRule.TRANSACTION_ID

    def test_unknown_transaction_id_falls_through(self, matcher):
        buffers = [make_buffer(minutes_before=20), make_buffer(minutes_before=10)]
        result = matcher.match(
            candidate=make_candidate(transaction_id="NOPE123456"), buffers=buffers
        )
        assert result.is_ambiguous
        assert result.rule == MatchRule.INDISTINGUISHABLE


class TestSenderStep:
    def test_sender_name_decides(self, matcher):
        target = make_buffer(sender_name="Ko  Aung")
        buffers = [make_buffer(sender_name="U Mya"), target]
        result = matcher.match(
            candidate=make_candidate(sender_name="KO AUNG"), buffers=buffers
        )
        assert result.buffer_id == target.id
        assert result.rule == MatchRule.SENDER_NAME

    def test_transaction_id_narrows_before_sender(self, matcher):
        a = make_buffer(transaction_id="REF123456", sender_name="U MYA", minutes_before=30)
        b = make_buffer(transaction_id="REF123456", sender_name="KO AUNG", minutes_before=20)
        c = make_buffer(sender_name="KO AUNG", minutes_before=10)
        result = matcher.match(
            candidate=make_candidate(transaction_id="REF123456", sender_name="ko aung"),
            buffers=[a, b, c],
        )
        assert result.buffer_id == b.id
        assert result.rule == MatchRule.SENDER_NAME


class TestAgeStep:
    def test_buffers_created_after_notification_excluded(self, matcher):
        earlier = make_buffer(minutes_before=5)
        later = make_buffer(minutes_before=-5)
        result = matcher.match(candidate=make_candidate(), buffers=[later, earlier])
        assert result.buffer_id == earlier.id
        assert result.rule == MatchRule.RECENCY

    def test_recency_window(self):
        matcher = PaymentMatcher(MatchingPolicy(recency_window=timedelta(minutes=30)))
        stale = make_buffer(minutes_before=120)
        recent = make_buffer(minutes_before=10)
        result = matcher.match(candidate=make_candidate(), buffers=[stale, recent])
        assert result.buffer_id == recent.id
        assert result.rule == MatchRule.RECENCY

    def test_indistinguishable_is_ambiguous_oldest_first(self, matcher):
        b1 = make_buffer(minutes_before=20)
        b2 = make_buffer(minutes_before=10)
        result = matcher.match(candidate=make_candidate(), buffers=[b2, b1])
        assert result.outcome == MatchOutcome.AMBIGUOUS
        assert result.candidate_buffer_ids == (b1.id, b2.id)
        assert result.buffer_id is None

    def test_no_received_at_skips_age_rule(self, matcher):
        b1 = make_buffer(minutes_before=20)
        b2 = make_buffer(minutes_before=-20)
        result = matcher.match(
            candidate=make_candidate(received_at=None), buffers=[b1, b2]
        )
        assert result.is_ambiguous

    def test_matcher_does_not_mutate_inputs(self, matcher):
        buffers = [make_buffer(minutes_before=20), make_buffer(minutes_before=10)]
        snapshot = list(buffers)
        matcher.match(candidate=make_candidate(), buffers=buffers)
        assert buffers == snapshot


class TestTypes:
    def test_ambiguous_needs_two(self):
        with pytest.raises(ValueError):
            MatchResult.ambiguous((uuid4(),), MatchRule.INDISTINGUISHABLE)

    def test_normalizers(self):
        assert normalize_transaction_id(" txn-882 ") == "TXN882"
        assert normalize_transaction_id("--") is None
        assert normalize_sender_name("  Ko \t Aung ") == "ko aung"
        assert normalize_sender_name(None) is None
