"""
Module: payment_kernel.models.payment_buffer
Responsibility: ORM persistence for expected mobile-money payments awaiting
    confirmation by an inbound notification.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Amounts are integer minor units (CHECK amount_minor > 0).
    - A verified buffer always carries linked_order_id and verified_at
      (CHECK ck_buffer_verified_complete).
    - verified only ever moves False -> True.  The single mutation point is
      PaymentBufferStore.mark_verified (conditional UPDATE); the ORM listener
      in db/immutability.py rejects any other attempt.
    - Buffers are never deleted (ORM listener + database trigger).

Failure modes:
    - IntegrityError on CHECK violation.
    - ImmutabilityViolationError on delete or un-verify attempts.

Audit relevance:
    Buffers are retained after verification, expiry, or order completion so
    every notification log entry that references one can still be resolved.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payment_kernel.db.base import Base


class PaymentBuffer(Base):
    """
    An order's expected incoming payment.

    Contract:
        Created when an order enters "awaiting mobile-money payment".  Claimed
        exactly once by a notification (or an operator) through an atomic
        compare-and-set on ``verified``.

    Guarantees:
        - ``expected_amount`` is derived from ``amount_minor`` and
          ``minor_unit_exponent``; it is never stored as a float.
        - ``eligible`` is cleared by the external expiry/cancel signal instead
          of deleting the row.
    """

    __tablename__ = "payment_buffers"

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_buffer_amount_positive"),
        CheckConstraint(
            "NOT verified OR (linked_order_id IS NOT NULL AND verified_at IS NOT NULL)",
            name="ck_buffer_verified_complete",
        ),
        # Candidate lookup: exact amount among open buffers, oldest first
        Index("idx_buffer_match", "amount_minor", "verified", "eligible", "created_at"),
        Index("idx_buffer_order", "order_id"),
    )

    amount_minor: Mapped[int] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Decimal places of the currency at creation time
    minor_unit_exponent: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    # The order awaiting this payment
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)

    transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    sender_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Text of the notification that verified this buffer
    raw_notification_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    linked_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    ineligible_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)

    ineligible_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def expected_amount(self) -> Decimal:
        """Expected amount as a fixed-point Decimal in major units."""
        return Decimal(self.amount_minor).scaleb(-self.minor_unit_exponent)

    def __repr__(self) -> str:
        return (
            f"<PaymentBuffer {self.id} {self.expected_amount} {self.currency} "
            f"order={self.order_id} verified={self.verified}>"
        )
