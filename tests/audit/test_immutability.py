"""
Immutability enforcement tests.

Two layers protect the audit trail:
- ORM listeners (db/immutability.py) reject changes made through models
- Database triggers (db/triggers.py) reject raw SQL and bulk statements

Notification log entries and resolutions are append-only.  Payment buffers
are never deleted, their identity fields never change, and a claim is final.
"""

from decimal import Decimal

import pytest
from sqlalchemy import text, update
from sqlalchemy.exc import DBAPIError

from payment_kernel.db.engine import get_engine
from payment_kernel.db.triggers import TRIGGERS, triggers_installed
from payment_kernel.exceptions import ImmutabilityViolationError
from payment_kernel.models.notification_log import NotificationLogEntry, NotificationStatus
from payment_kernel.models.payment_buffer import PaymentBuffer
from payment_kernel.models.resolution import ReconciliationResolution
from payment_kernel.services.audit_log import NotificationAuditLog


@pytest.fixture
def log_entry(session, clock):
    dto = NotificationAuditLog(session, clock).record(
        status=NotificationStatus.UNMATCHED,
        message_content="Received 10,000 Ks",
        received_at=clock.now(),
        reason_code="no_candidate",
    )
    return session.get(NotificationLogEntry, dto.id)


@pytest.fixture
def open_buffer(session, buffer_store):
    dto = buffer_store.create(Decimal("10000"), order_id="ORD-1")
    return session.get(PaymentBuffer, dto.id)


@pytest.fixture
def verified_buffer(session, buffer_store):
    dto = buffer_store.create(Decimal("10000"), order_id="ORD-2")
    buffer_store.mark_verified(dto.id, "ORD-2")
    return session.get(PaymentBuffer, dto.id, populate_existing=True)


@pytest.fixture
def resolution(session, clock, log_entry, open_buffer):
    res = ReconciliationResolution(
        log_entry_id=log_entry.id,
        buffer_id=open_buffer.id,
        order_id=open_buffer.order_id,
        resolved_by="admin",
        created_at=clock.now(),
    )
    session.add(res)
    session.flush()
    return res


class TestOrmLayer:
    def test_log_entry_update_blocked(self, session, log_entry):
        log_entry.reason_code = "rewritten"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "NotificationLogEntry"

    def test_log_entry_delete_blocked(self, session, log_entry):
        session.delete(log_entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_resolution_update_blocked(self, session, resolution):
        resolution.resolved_by = "someone else"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_resolution_delete_blocked(self, session, resolution):
        session.delete(resolution)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_buffer_delete_blocked(self, session, open_buffer):
        session.delete(open_buffer)
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "PaymentBuffer"

    def test_buffer_amount_fixed(self, session, open_buffer):
        open_buffer.amount_minor = 1
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_open_buffer_descriptive_fields_editable(self, session, open_buffer):
        open_buffer.sender_name = "U MYA"
        session.flush()

    def test_verified_buffer_relink_blocked(self, session, verified_buffer):
        verified_buffer.linked_order_id = "ORD-OTHER"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_verified_buffer_unverify_blocked(self, session, verified_buffer):
        verified_buffer.verified = False
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_logged(self, session, log_entry, captured_logs):
        session.delete(log_entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        records = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert records[0]["operation"] == "DELETE"


class TestDatabaseTriggers:
    """Raw SQL and bulk statements bypass the ORM listeners."""

    def test_all_triggers_installed(self, db_engine):
        assert triggers_installed(get_engine()) == {name for name, _ in TRIGGERS}

    def test_raw_update_of_log_entry_blocked(self, session, log_entry):
        with pytest.raises(DBAPIError):
            session.execute(
                text("UPDATE notification_logs SET reason_code = 'x' WHERE id = :id"),
                {"id": str(log_entry.id)},
            )

    def test_raw_delete_of_log_entry_blocked(self, session, log_entry):
        with pytest.raises(DBAPIError):
            session.execute(
                text("DELETE FROM notification_logs WHERE id = :id"),
                {"id": str(log_entry.id)},
            )

    def test_bulk_update_of_resolution_blocked(self, session, resolution):
        with pytest.raises(DBAPIError):
            session.execute(
                update(ReconciliationResolution)
                .where(ReconciliationResolution.id == resolution.id)
                .values(note="edited")
                .execution_options(synchronize_session=False)
            )

    def test_raw_delete_of_buffer_blocked(self, session, open_buffer):
        with pytest.raises(DBAPIError):
            session.execute(
                text("DELETE FROM payment_buffers WHERE id = :id"),
                {"id": str(open_buffer.id)},
            )

    def test_bulk_relink_of_verified_buffer_blocked(self, session, verified_buffer):
        with pytest.raises(DBAPIError):
            session.execute(
                update(PaymentBuffer)
                .where(PaymentBuffer.id == verified_buffer.id)
                .values(linked_order_id="ORD-OTHER")
                .execution_options(synchronize_session=False)
            )

    def test_bulk_expiry_of_open_buffer_allowed(self, session, open_buffer):
        result = session.execute(
            update(PaymentBuffer)
            .where(PaymentBuffer.id == open_buffer.id)
            .values(eligible=False, ineligible_reason="expired")
            .execution_options(synchronize_session=False)
        )
        assert result.rowcount == 1
