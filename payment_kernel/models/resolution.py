"""
Module: payment_kernel.models.resolution
Responsibility: ORM persistence for manual reconciliation -- an operator
    linking an unmatched or ambiguous notification to a payment buffer.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One resolution per log entry (UNIQUE log_entry_id).
    - One resolution per buffer (UNIQUE buffer_id).
    - Append-only, like the notification log it annotates.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payment_kernel.db.base import Base, UUIDString


class ReconciliationResolution(Base):
    """Operator decision resolving one unresolved notification."""

    __tablename__ = "reconciliation_resolutions"

    log_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("notification_logs.id"),
        nullable=False,
        unique=True,
    )

    buffer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payment_buffers.id"),
        nullable=False,
        unique=True,
    )

    order_id: Mapped[str] = mapped_column(String(64), nullable=False)

    resolved_by: Mapped[str] = mapped_column(String(100), nullable=False)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ReconciliationResolution log={self.log_entry_id} "
            f"buffer={self.buffer_id} by={self.resolved_by}>"
        )
