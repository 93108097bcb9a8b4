"""
Module: payment_kernel.models.notification_log
Responsibility: ORM persistence for the append-only audit log of inbound
    payment notifications.  Every notification ends here -- no exceptions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per inbound notification; status fixed at write time.
    - Append-only: UPDATE and DELETE rejected by ORM listener and trigger.
    - At most one ``matched`` row per buffer (partial unique index
      uq_log_matched_buffer).
    - Duplicate deliveries collapse onto one row (UNIQUE dedup_key).

Failure modes:
    - IntegrityError on duplicate dedup_key (concurrent duplicate delivery).
    - IntegrityError on a second matched row for the same buffer.

Audit relevance:
    Support and admin screens read this table to recover unmatched and
    ambiguous payments manually.  For matched rows, buffer_id and
    matched_order_id tie the notification to the fulfilled order.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Index, SmallInteger, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from payment_kernel.db.base import Base, UUIDString


class NotificationStatus(str, Enum):
    """
    Status of an inbound notification.

    State machine:
        RECEIVED -> INVALID | UNMATCHED | AMBIGUOUS | MATCHED
        All outcomes are terminal; there is no retry in place.
    """

    RECEIVED = "received"      # Accepted, not yet classified (never persisted)
    MATCHED = "matched"        # Claimed exactly one buffer
    AMBIGUOUS = "ambiguous"    # Several indistinguishable buffers
    UNMATCHED = "unmatched"    # Valid amount, no eligible buffer (or claim lost)
    INVALID = "invalid"        # No plausible amount in the text


TERMINAL_STATUSES: frozenset[NotificationStatus] = frozenset({
    NotificationStatus.MATCHED,
    NotificationStatus.AMBIGUOUS,
    NotificationStatus.UNMATCHED,
    NotificationStatus.INVALID,
})

# Statuses an operator may resolve manually
RESOLVABLE_STATUSES: frozenset[NotificationStatus] = frozenset({
    NotificationStatus.AMBIGUOUS,
    NotificationStatus.UNMATCHED,
})


class NotificationLogEntry(Base):
    """
    Immutable record of one inbound notification and its outcome.

    Guarantees:
        - Written exactly once per notification by NotificationAuditLog.
        - For MATCHED rows, buffer_id and matched_order_id are set.
        - For AMBIGUOUS rows, candidate_buffer_ids lists the buffers an
          operator must choose between.
    """

    __tablename__ = "notification_logs"

    __table_args__ = (
        Index(
            "uq_log_matched_buffer",
            "buffer_id",
            unique=True,
            postgresql_where=text("status = 'matched'"),
            sqlite_where=text("status = 'matched'"),
        ),
        Index("idx_log_status", "status"),
        Index("idx_log_created", "created_at"),
        Index("idx_log_buffer", "buffer_id"),
    )

    # Channel-reported sender (short code, phone number), when known
    sender: Mapped[str | None] = mapped_column(String(100), nullable=True)

    message_content: Mapped[str] = mapped_column(Text, nullable=False)

    amount_minor: Mapped[int | None] = mapped_column(nullable=True)

    minor_unit_exponent: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)

    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    sender_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[NotificationStatus] = mapped_column(String(20), nullable=False)

    # Machine-readable reason (extraction failure, matcher rule, claim_lost)
    reason_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    matched_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    buffer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # JSON array of buffer UUID strings, oldest first
    candidate_buffer_ids: Mapped[list | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )

    dedup_key: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)

    received_at: Mapped[datetime] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def extracted_amount(self) -> Decimal | None:
        """Extracted amount as a fixed-point Decimal, or None if invalid."""
        if self.amount_minor is None or self.minor_unit_exponent is None:
            return None
        return Decimal(self.amount_minor).scaleb(-self.minor_unit_exponent)

    def __repr__(self) -> str:
        return f"<NotificationLogEntry {self.id} {self.status}>"
