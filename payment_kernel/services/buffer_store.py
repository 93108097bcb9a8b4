"""
PaymentBufferStore -- pending expected payments and the atomic claim.

Responsibility:
    Creates payment buffers when an order starts waiting for a mobile-money
    transfer, finds open candidates for an extracted amount, and performs
    the single compare-and-set that verifies a buffer.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by ReconciliationCoordinator (claim) and
    ManualReconciliationService (operator claim), and by the order system
    for create / mark_ineligible.

Invariants enforced:
    - At most one successful claim per buffer: ``mark_verified`` is one
      conditional UPDATE guarded by ``verified = false AND eligible = true``.
      There is no read-then-write; the row read afterwards only classifies
      a failed claim.
    - ``verified``, ``verified_at`` and ``linked_order_id`` are set in the
      same statement.
    - Amounts compare as integer minor units, never as floats.

Failure modes:
    - InvalidAmountError on float, non-positive or oversized expected amounts.
    - BufferNotFoundError from mark_ineligible for an unknown buffer.
    - A failed claim is NOT an exception: VerifyResult carries
      ALREADY_VERIFIED, INELIGIBLE or NOT_FOUND.

Audit relevance:
    Buffers are never deleted.  Expiry is recorded by clearing ``eligible``
    with a reason and timestamp.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select, update

from payment_kernel.domain.dtos import PaymentBufferDTO, VerifyResult, VerifyStatus
from payment_kernel.domain.values import MAX_AMOUNT_MINOR, quantize_amount, to_minor_units
from payment_kernel.exceptions import BufferNotFoundError, InvalidAmountError
from payment_kernel.logging_config import get_logger
from payment_kernel.models.payment_buffer import PaymentBuffer
from payment_kernel.services.base import BaseService

logger = get_logger("services.buffer_store")


class PaymentBufferStore(BaseService[PaymentBuffer]):
    """
    Write-side access to payment buffers.

    Contract:
        Every method runs inside the caller's transaction.  ``create`` and
        ``mark_ineligible`` flush; ``mark_verified`` issues its UPDATE
        directly, so the claim takes the row lock immediately.

    Usage:
        store = PaymentBufferStore(session, clock, currency="MMK", decimal_places=2)
        buffer = store.create(Decimal("500000"), order_id="ORD-1")
        result = store.mark_verified(buffer.id, buffer.order_id)
        if result.claimed:
            ...
    """

    def __init__(
        self,
        session,
        clock=None,
        currency: str = "MMK",
        decimal_places: int = 2,
    ):
        super().__init__(session, clock)
        self.currency = currency
        self.decimal_places = decimal_places

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create(
        self,
        expected_amount: Decimal | int | str,
        order_id: str,
        transaction_id: str | None = None,
        sender_name: str | None = None,
        currency: str | None = None,
    ) -> PaymentBufferDTO:
        """
        Create an unverified buffer for an order awaiting payment.

        The amount is rounded to the currency's minor unit (ROUND_HALF_UP)
        and must be strictly positive afterwards.

        Raises:
            InvalidAmountError: float, non-numeric, zero or negative amount.
            ValueError: empty order_id.
        """
        if not order_id:
            raise ValueError("order_id is required")

        amount = self._coerce_amount(expected_amount)
        amount_minor = to_minor_units(amount, self.decimal_places)
        if amount_minor <= 0:
            raise InvalidAmountError(str(expected_amount), "must be greater than zero")
        if amount_minor > MAX_AMOUNT_MINOR:
            raise InvalidAmountError(str(expected_amount), "too large to store")

        buffer = PaymentBuffer(
            amount_minor=amount_minor,
            currency=(currency or self.currency).upper(),
            minor_unit_exponent=self.decimal_places,
            order_id=order_id,
            transaction_id=transaction_id.strip().upper() if transaction_id else None,
            sender_name=sender_name.strip() if sender_name else None,
            verified=False,
            eligible=True,
            created_at=self.clock.now(),
        )
        self.session.add(buffer)
        self.session.flush()

        logger.info(
            "buffer_created",
            extra={
                "buffer_id": str(buffer.id),
                "order_id": order_id,
                "amount_minor": amount_minor,
                "currency": buffer.currency,
            },
        )
        return PaymentBufferDTO.from_model(buffer)

    def _coerce_amount(self, value) -> Decimal:
        if isinstance(value, float):
            raise InvalidAmountError(repr(value), "float amounts are not accepted")
        try:
            amount = value if isinstance(value, Decimal) else Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise InvalidAmountError(str(value), "not a number") from e
        if not amount.is_finite():
            raise InvalidAmountError(str(value), "not a finite number")
        try:
            return quantize_amount(amount, self.decimal_places)
        except InvalidOperation as e:
            raise InvalidAmountError(str(value), "too large to store") from e

    # -------------------------------------------------------------------------
    # Reads used by matching
    # -------------------------------------------------------------------------

    def get(self, buffer_id: UUID) -> PaymentBufferDTO | None:
        # The claim bypasses the identity map, so always reload
        buffer = self.session.get(PaymentBuffer, buffer_id, populate_existing=True)
        return PaymentBufferDTO.from_model(buffer) if buffer is not None else None

    def find_unverified_candidates(
        self,
        amount: Decimal,
        within_window: timedelta | None = None,
        as_of: datetime | None = None,
        currency: str | None = None,
    ) -> list[PaymentBufferDTO]:
        """
        Open buffers whose expected amount equals ``amount`` exactly.

        Args:
            amount: Amount in major units; compared as minor units.
            within_window: When given, only buffers created at or after
                ``as_of - within_window``.  None means buffers never expire
                for matching.
            as_of: Reference time for the window (defaults to clock.now()).
            currency: Currency to match (defaults to the store currency).

        Returns:
            Buffers with ``verified = false`` and ``eligible = true``,
            oldest first.
        """
        amount_minor = to_minor_units(self._coerce_amount(amount), self.decimal_places)
        stmt = (
            select(PaymentBuffer)
            .where(
                PaymentBuffer.amount_minor == amount_minor,
                PaymentBuffer.currency == (currency or self.currency).upper(),
                PaymentBuffer.verified.is_(False),
                PaymentBuffer.eligible.is_(True),
            )
            .order_by(PaymentBuffer.created_at, PaymentBuffer.id)
        )
        if within_window is not None:
            reference = as_of or self.clock.now()
            stmt = stmt.where(PaymentBuffer.created_at >= reference - within_window)

        buffers = self.session.execute(stmt).scalars().all()
        return [PaymentBufferDTO.from_model(b) for b in buffers]

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def mark_verified(
        self,
        buffer_id: UUID,
        order_id: str,
        raw_notification_text: str | None = None,
    ) -> VerifyResult:
        """
        Claim a buffer for ``order_id`` with a single conditional UPDATE.

        Postconditions:
            - VERIFIED: this caller won; verified, verified_at and
              linked_order_id are set together.
            - Otherwise nothing was written.

        Returns:
            VerifyResult with VERIFIED, ALREADY_VERIFIED, INELIGIBLE or
            NOT_FOUND.
        """
        verified_at = self.clock.now()
        values = {
            "verified": True,
            "verified_at": verified_at,
            "linked_order_id": order_id,
        }
        if raw_notification_text is not None:
            values["raw_notification_text"] = raw_notification_text

        stmt = (
            update(PaymentBuffer)
            .where(
                PaymentBuffer.id == buffer_id,
                PaymentBuffer.verified.is_(False),
                PaymentBuffer.eligible.is_(True),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        if result.rowcount == 1:
            logger.info(
                "buffer_claimed",
                extra={"buffer_id": str(buffer_id), "order_id": order_id},
            )
            return VerifyResult(
                status=VerifyStatus.VERIFIED,
                buffer_id=buffer_id,
                order_id=order_id,
                verified_at=verified_at,
            )

        status = self._classify_failed_claim(buffer_id)
        logger.warning(
            "buffer_claim_failed",
            extra={
                "buffer_id": str(buffer_id),
                "order_id": order_id,
                "claim_status": status.value,
            },
        )
        return VerifyResult(status=status, buffer_id=buffer_id)

    def _classify_failed_claim(self, buffer_id: UUID) -> VerifyStatus:
        buffer = self.session.get(PaymentBuffer, buffer_id, populate_existing=True)
        if buffer is None:
            return VerifyStatus.NOT_FOUND
        if not buffer.eligible and not buffer.verified:
            return VerifyStatus.INELIGIBLE
        return VerifyStatus.ALREADY_VERIFIED

    def mark_ineligible(self, buffer_id: UUID, reason: str) -> PaymentBufferDTO:
        """
        Record that the order system expired or cancelled the buffer's order.

        Verified and already-ineligible buffers are returned unchanged.

        Raises:
            BufferNotFoundError: If the buffer does not exist.
        """
        stmt = (
            update(PaymentBuffer)
            .where(
                PaymentBuffer.id == buffer_id,
                PaymentBuffer.verified.is_(False),
                PaymentBuffer.eligible.is_(True),
            )
            .values(
                eligible=False,
                ineligible_reason=reason,
                ineligible_at=self.clock.now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        buffer = self.session.get(PaymentBuffer, buffer_id, populate_existing=True)
        if buffer is None:
            raise BufferNotFoundError(str(buffer_id))

        if result.rowcount == 1:
            logger.info(
                "buffer_marked_ineligible",
                extra={"buffer_id": str(buffer_id), "reason": reason},
            )
        else:
            logger.info(
                "buffer_ineligible_skipped",
                extra={
                    "buffer_id": str(buffer_id),
                    "verified": buffer.verified,
                    "eligible": buffer.eligible,
                },
            )
        return PaymentBufferDTO.from_model(buffer)
