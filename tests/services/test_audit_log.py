"""
Tests for NotificationAuditLog.

Verifies:
- One entry per record() call with the extracted fields copied
- Only terminal statuses are persisted
- MATCHED entries require buffer and order
- dedup_key is unique
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from payment_engines.extraction import extract
from payment_kernel.models.notification_log import NotificationStatus
from payment_kernel.services.audit_log import NotificationAuditLog


@pytest.fixture
def audit(session, clock):
    return NotificationAuditLog(session, clock)


class TestRecord:
    def test_invalid_entry(self, audit, clock):
        entry = audit.record(
            status=NotificationStatus.INVALID,
            message_content="hello",
            received_at=clock.now(),
            sender="8484",
            reason_code="no_amount",
        )
        assert entry.id is not None
        assert entry.status == "invalid"
        assert entry.reason_code == "no_amount"
        assert entry.extracted_amount is None
        assert entry.created_at == clock.now()

    def test_candidate_fields_copied(self, audit, clock):
        candidate = extract("You received MMK 500,000 from KO AUNG. Ref: TXN882")
        entry = audit.record(
            status=NotificationStatus.UNMATCHED,
            message_content=candidate.raw_text,
            received_at=clock.now(),
            candidate=candidate,
            reason_code="no_candidate",
        )
        assert entry.extracted_amount == Decimal("500000.00")
        assert entry.currency == "MMK"
        assert entry.transaction_id == "TXN882"
        assert entry.sender_name == "KO AUNG"

    def test_ambiguous_candidate_ids(self, audit, clock):
        ids = [uuid4(), uuid4()]
        entry = audit.record(
            status=NotificationStatus.AMBIGUOUS,
            message_content="Received 10,000 Ks",
            received_at=clock.now(),
            candidate_buffer_ids=ids,
        )
        assert entry.candidate_buffer_ids == [str(i) for i in ids]

    def test_received_status_rejected(self, audit, clock):
        with pytest.raises(ValueError):
            audit.record(
                status=NotificationStatus.RECEIVED,
                message_content="x",
                received_at=clock.now(),
            )

    def test_matched_requires_buffer_and_order(self, audit, clock):
        with pytest.raises(ValueError):
            audit.record(
                status=NotificationStatus.MATCHED,
                message_content="x",
                received_at=clock.now(),
                buffer_id=uuid4(),
            )

    def test_duplicate_dedup_key_rejected(self, audit, clock):
        audit.record(
            status=NotificationStatus.INVALID,
            message_content="x",
            received_at=clock.now(),
            dedup_key="k" * 64 + ":1",
        )
        with pytest.raises(IntegrityError):
            audit.record(
                status=NotificationStatus.INVALID,
                message_content="x",
                received_at=clock.now() + timedelta(seconds=1),
                dedup_key="k" * 64 + ":1",
            )

    def test_find_by_dedup_key(self, audit, clock):
        entry = audit.record(
            status=NotificationStatus.INVALID,
            message_content="x",
            received_at=clock.now(),
            dedup_key="abc:1",
        )
        assert audit.find_by_dedup_key("abc:1").id == entry.id
        assert audit.find_by_dedup_key("missing:1") is None

    def test_logs_entry(self, audit, clock, captured_logs):
        entry = audit.record(
            status=NotificationStatus.INVALID,
            message_content="x",
            received_at=clock.now(),
            reason_code="no_amount",
        )
        records = [r for r in captured_logs() if r["message"] == "notification_logged"]
        assert records[0]["log_entry_id"] == str(entry.id)
        assert records[0]["status"] == "invalid"
