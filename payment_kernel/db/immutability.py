"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The notification log is the only record operators have for recovering a
payment that did not match automatically.  If a row could be edited or
deleted, a lost payment could disappear without trace.  Payment buffers are
likewise retained forever so every log entry stays resolvable.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (database triggers)
    - Catches raw SQL, bulk UPDATE statements, direct console access
    - Fires AT the database level, independent of application code

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                      | When Immutable                    | Why
----------------------------|-----------------------------------|----------------------------------
NotificationLogEntry        | ALWAYS (from creation)            | Audit trail of every notification
ReconciliationResolution    | ALWAYS (from creation)            | Operator decisions are auditable
PaymentBuffer               | Never deletable; identity fields  | Log entries reference buffers;
                            | always; claim fields once verified| a claim is final

The claim itself (PaymentBufferStore.mark_verified) is a Core UPDATE and
does not pass through these listeners; the buffer rules below stop ORM code
from re-opening or rewriting a claim afterwards.
"""

from sqlalchemy import event, inspect

from payment_kernel.exceptions import ImmutabilityViolationError
from payment_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Fields fixed at buffer creation
BUFFER_IDENTITY_FIELDS = frozenset({
    "amount_minor",
    "currency",
    "minor_unit_exponent",
    "order_id",
    "created_at",
})

# Fields fixed once the buffer is verified
BUFFER_CLAIM_FIELDS = frozenset({
    "verified",
    "verified_at",
    "linked_order_id",
    "raw_notification_text",
})


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


# =============================================================================
# Append-only records
# =============================================================================


def _check_log_entry_update(mapper, connection, target):
    _blocked(
        "NotificationLogEntry", target.id, "UPDATE",
        "Notification log entries are immutable and cannot be modified",
    )


def _check_log_entry_delete(mapper, connection, target):
    _blocked(
        "NotificationLogEntry", target.id, "DELETE",
        "Notification log entries cannot be deleted",
    )


def _check_resolution_update(mapper, connection, target):
    _blocked(
        "ReconciliationResolution", target.id, "UPDATE",
        "Reconciliation resolutions are immutable and cannot be modified",
    )


def _check_resolution_delete(mapper, connection, target):
    _blocked(
        "ReconciliationResolution", target.id, "DELETE",
        "Reconciliation resolutions cannot be deleted",
    )


# =============================================================================
# Payment buffers
# =============================================================================


def _check_buffer_update(mapper, connection, target):
    """
    Reject identity changes always, and claim changes once verified.

    A buffer whose committed state is verified keeps its claim fields; the
    history's ``deleted`` side holds the value loaded from the database.
    """
    state = inspect(target)

    for field in BUFFER_IDENTITY_FIELDS:
        if state.attrs[field].history.has_changes():
            _blocked(
                "PaymentBuffer", target.id, "UPDATE",
                f"Field '{field}' is fixed at buffer creation",
            )

    verified_history = state.attrs["verified"].history
    was_verified = bool(verified_history.deleted and verified_history.deleted[0]) or (
        not verified_history.has_changes() and target.verified
    )
    if not was_verified:
        return

    for field in BUFFER_CLAIM_FIELDS:
        if state.attrs[field].history.has_changes():
            _blocked(
                "PaymentBuffer", target.id, "UPDATE",
                f"Field '{field}' cannot change after the buffer is verified",
            )


def _check_buffer_delete(mapper, connection, target):
    _blocked(
        "PaymentBuffer", target.id, "DELETE",
        "Payment buffers are retained for audit and cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are skipped.
    """
    from payment_kernel.models.notification_log import NotificationLogEntry
    from payment_kernel.models.payment_buffer import PaymentBuffer
    from payment_kernel.models.resolution import ReconciliationResolution

    for target, name, fn in _listeners(
        NotificationLogEntry, ReconciliationResolution, PaymentBuffer
    ):
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)

    logger.debug("immutability_listeners_registered")


def _listeners(log_entry_cls, resolution_cls, buffer_cls):
    return (
        (log_entry_cls, "before_update", _check_log_entry_update),
        (log_entry_cls, "before_delete", _check_log_entry_delete),
        (resolution_cls, "before_update", _check_resolution_update),
        (resolution_cls, "before_delete", _check_resolution_delete),
        (buffer_cls, "before_update", _check_buffer_update),
        (buffer_cls, "before_delete", _check_buffer_delete),
    )
