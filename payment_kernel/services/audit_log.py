"""
NotificationAuditLog -- append-only record of every inbound notification.

Responsibility:
    Writes exactly one NotificationLogEntry per processed notification,
    whatever its outcome, and looks entries up by deduplication key.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by ReconciliationCoordinator in the same transaction as the
    buffer claim.  Admin reads go through NotificationLogSelector.

Invariants enforced:
    - Append-only: this service only INSERTs.  ORM listeners and database
      triggers reject UPDATE and DELETE.
    - Only terminal statuses are persisted; RECEIVED is in-memory only.
    - A MATCHED entry names both its buffer and its order.

Failure modes:
    - ValueError for a non-terminal status or an incomplete MATCHED entry.
    - IntegrityError (at flush) on a duplicate dedup_key or a second
      MATCHED entry for the same buffer.  The coordinator handles both.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from payment_kernel.domain.dtos import NotificationCandidate
from payment_kernel.logging_config import get_logger
from payment_kernel.models.notification_log import (
    TERMINAL_STATUSES,
    NotificationLogEntry,
    NotificationStatus,
)
from payment_kernel.services.base import BaseService

logger = get_logger("services.audit_log")


class NotificationAuditLog(BaseService[NotificationLogEntry]):
    """
    Append-only writer for the notification log.

    Usage:
        audit = NotificationAuditLog(session, clock)
        entry = audit.record(
            status=NotificationStatus.AMBIGUOUS,
            message_content=raw_text,
            received_at=received_at,
            candidate=candidate,
            candidate_buffer_ids=[b1.id, b2.id],
            reason_code="indistinguishable",
        )
    """

    def record(
        self,
        status: NotificationStatus,
        message_content: str,
        received_at: datetime,
        sender: str | None = None,
        candidate: NotificationCandidate | None = None,
        reason_code: str | None = None,
        buffer_id: UUID | None = None,
        matched_order_id: str | None = None,
        candidate_buffer_ids: list[UUID] | None = None,
        dedup_key: str | None = None,
    ) -> NotificationLogEntry:
        """
        Append one log entry and flush.

        Args:
            status: Terminal outcome of the notification.
            message_content: Raw notification text, stored verbatim.
            received_at: When the notification arrived.
            sender: Channel-reported sender, if known.
            candidate: Extracted fields; None for INVALID notifications.
            reason_code: Why this outcome was reached.
            buffer_id: The claimed buffer (MATCHED only).
            matched_order_id: The order unblocked (MATCHED only).
            candidate_buffer_ids: Buffers an operator must choose from.
            dedup_key: Duplicate-delivery key (unique).

        Returns:
            The persisted NotificationLogEntry.
        """
        status = NotificationStatus(status)
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Only terminal statuses are logged, got {status.value}")
        if status == NotificationStatus.MATCHED and (
            buffer_id is None or not matched_order_id
        ):
            raise ValueError("A matched log entry requires buffer_id and matched_order_id")

        entry = NotificationLogEntry(
            sender=sender,
            message_content=message_content,
            status=status.value,
            reason_code=reason_code,
            matched_order_id=matched_order_id,
            buffer_id=buffer_id,
            candidate_buffer_ids=(
                [str(b) for b in candidate_buffer_ids] if candidate_buffer_ids else None
            ),
            dedup_key=dedup_key,
            received_at=received_at,
            created_at=self.clock.now(),
        )
        if candidate is not None:
            entry.amount_minor = candidate.amount_minor
            entry.minor_unit_exponent = candidate.decimal_places
            entry.currency = candidate.currency
            entry.transaction_id = candidate.transaction_id
            entry.sender_name = candidate.sender_name

        self.session.add(entry)
        self.session.flush()

        logger.info(
            "notification_logged",
            extra={
                "log_entry_id": str(entry.id),
                "status": status.value,
                "reason_code": reason_code,
            },
        )
        return entry

    def find_by_dedup_key(self, dedup_key: str) -> NotificationLogEntry | None:
        return self.session.execute(
            select(NotificationLogEntry).where(NotificationLogEntry.dedup_key == dedup_key)
        ).scalar_one_or_none()
