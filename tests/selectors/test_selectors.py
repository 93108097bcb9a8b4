"""
Tests for the read-side selectors.

Verifies:
- PaymentBufferSelector lists pending buffers and an order's buffers
- NotificationLogSelector filters the log, builds the unresolved queue
  and traces a buffer's history
"""

import pytest

from payment_kernel.models.notification_log import NotificationStatus
from payment_kernel.selectors import NotificationLogSelector, PaymentBufferSelector


@pytest.fixture
def buffers(read_session):
    return PaymentBufferSelector(read_session())


@pytest.fixture
def log(read_session):
    return NotificationLogSelector(read_session())


class TestPaymentBufferSelector:
    def test_list_pending(self, make_buffer, coordinator, read_session):
        first = make_buffer("10000")
        second = make_buffer("20000")
        third = make_buffer("30000")
        coordinator.process_notification("Received 20,000 Ks")

        selector = PaymentBufferSelector(read_session())
        assert [b.id for b in selector.list_pending()] == [first.id, third.id]
        assert [b.id for b in selector.list_pending(limit=1)] == [first.id]
        assert selector.get(second.id).verified

    def test_for_order(self, make_buffer, buffers):
        a = make_buffer("10000", order_id="ORD-X")
        b = make_buffer("15000", order_id="ORD-X")
        make_buffer("10000", order_id="ORD-Y")
        assert [x.id for x in buffers.for_order("ORD-X")] == [a.id, b.id]
        assert buffers.for_order("ORD-NONE") == []


class TestNotificationLogSelector:
    def test_list_entries_newest_first(self, coordinator, clock, log):
        first = coordinator.process_notification("garbage")
        clock.advance(10)
        second = coordinator.process_notification("Received 10,000 Ks")

        assert [e.id for e in log.list_entries()] == [second.log_entry_id, first.log_entry_id]
        assert [e.id for e in log.list_entries(status="invalid")] == [first.log_entry_id]
        assert [e.id for e in log.list_entries(limit=1, offset=1)] == [first.log_entry_id]

    def test_list_unresolved(self, coordinator, make_buffer, clock, log):
        make_buffer("10000")
        make_buffer("10000")
        make_buffer("30000")
        ambiguous = coordinator.process_notification("Received 10,000 Ks")
        clock.advance(10)
        unmatched = coordinator.process_notification("Received 99,000 Ks")
        clock.advance(10)
        coordinator.process_notification("Received 30,000 Ks")
        coordinator.process_notification("nothing here")

        unresolved = log.list_unresolved()
        assert [e.id for e in unresolved] == [ambiguous.log_entry_id, unmatched.log_entry_id]
        assert [e.status for e in unresolved] == ["ambiguous", "unmatched"]
        assert len(log.list_unresolved(limit=1)) == 1

    def test_entries_for_buffer(self, coordinator, manual_service, make_buffer, clock, log):
        b1 = make_buffer("10000")
        b2 = make_buffer("10000")
        ambiguous = coordinator.process_notification("Received 10,000 Ks")
        clock.advance(400)
        manual_service.link(ambiguous.log_entry_id, b1.id, resolved_by="admin")
        matched = coordinator.process_notification("Received 10,000 Ks")

        assert matched.buffer_id == b2.id
        assert [e.id for e in log.entries_for_buffer(b1.id)] == [ambiguous.log_entry_id]
        assert [e.id for e in log.entries_for_buffer(b2.id)] == [
            ambiguous.log_entry_id,
            matched.log_entry_id,
        ]

    def test_ambiguous_candidates_as_uuids(self, coordinator, make_buffer, log):
        b1 = make_buffer("10000")
        b2 = make_buffer("10000")
        outcome = coordinator.process_notification("Received 10,000 Ks")
        assert log.get(outcome.log_entry_id).candidate_buffer_ids == (b1.id, b2.id)

    def test_count_by_status(self, coordinator, make_buffer, clock, log):
        make_buffer("10000")
        coordinator.process_notification("Received 10,000 Ks")
        clock.advance(1)
        coordinator.process_notification("Received 10,000 Ks from U BA")
        coordinator.process_notification("hello")

        assert log.count_by_status() == {
            NotificationStatus.MATCHED.value: 1,
            NotificationStatus.UNMATCHED.value: 1,
            NotificationStatus.INVALID.value: 1,
        }

    def test_get_missing(self, log):
        from uuid import uuid4

        assert log.get(uuid4()) is None
        assert log.resolution_for(uuid4()) is None
