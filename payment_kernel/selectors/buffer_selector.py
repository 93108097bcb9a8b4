"""
Module: payment_kernel.selectors.buffer_selector
Responsibility: Read-only queries over payment buffers for admin screens:
    pending (claimable) buffers, a buffer by id, and buffers of an order.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from payment_kernel.domain.dtos import PaymentBufferDTO
from payment_kernel.models.payment_buffer import PaymentBuffer
from payment_kernel.selectors.base import BaseSelector


class PaymentBufferSelector(BaseSelector[PaymentBuffer]):
    """Selector for payment buffer queries."""

    def get(self, buffer_id: UUID) -> PaymentBufferDTO | None:
        buffer = self.session.get(PaymentBuffer, buffer_id)
        return PaymentBufferDTO.from_model(buffer) if buffer is not None else None

    def list_pending(self, limit: int | None = None) -> list[PaymentBufferDTO]:
        """Unverified, eligible buffers, oldest first."""
        stmt = (
            select(PaymentBuffer)
            .where(PaymentBuffer.verified.is_(False), PaymentBuffer.eligible.is_(True))
            .order_by(PaymentBuffer.created_at, PaymentBuffer.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [PaymentBufferDTO.from_model(b) for b in self.session.execute(stmt).scalars()]

    def for_order(self, order_id: str) -> list[PaymentBufferDTO]:
        stmt = (
            select(PaymentBuffer)
            .where(PaymentBuffer.order_id == order_id)
            .order_by(PaymentBuffer.created_at, PaymentBuffer.id)
        )
        return [PaymentBufferDTO.from_model(b) for b in self.session.execute(stmt).scalars()]
