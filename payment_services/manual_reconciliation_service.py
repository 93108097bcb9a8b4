"""
ManualReconciliationService -- operator resolution of unmatched payments.

Responsibility:
    Lets support staff link an unmatched or ambiguous notification to the
    payment buffer they identified by hand.  The link uses the same atomic
    claim as automatic matching, so an operator can never verify a buffer
    a notification already claimed (or vice versa).

Architecture position:
    Services -- stateful orchestration over kernel services.
    Reads the log entry, claims the buffer through PaymentBufferStore and
    appends a ReconciliationResolution in one transaction, then sends the
    fulfillment signal.

Invariants enforced:
    - Only AMBIGUOUS and UNMATCHED entries can be linked, once each.
    - A buffer is verified at most once, whoever claims it.
    - The notification log entry is never modified; the resolution row is
      the record of the operator's decision.

Failure modes:
    - LogEntryNotFoundError / BufferNotFoundError: unknown ids.
    - LogEntryNotResolvableError: matched or invalid entry, or one that is
      already resolved (including concurrently).
    - BufferAlreadyVerifiedError / BufferIneligibleError: the claim failed.
    - StoreUnavailableError: database failure; nothing was committed.
    - FulfillmentSignalError: the order system raised after commit.

Audit relevance:
    The resolution records who linked what and when.  An amount mismatch
    between the notification and the buffer is allowed (partial transfers,
    typos) but logged as a warning.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import UUID

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from payment_config import ReconciliationConfig, get_active_config
from payment_kernel.domain.clock import Clock, SystemClock
from payment_kernel.domain.dtos import ResolutionDTO, VerifyStatus
from payment_kernel.exceptions import (
    BufferAlreadyVerifiedError,
    BufferIneligibleError,
    BufferNotFoundError,
    FulfillmentSignalError,
    LogEntryNotFoundError,
    LogEntryNotResolvableError,
    StoreUnavailableError,
)
from payment_kernel.logging_config import LogContext, get_logger
from payment_kernel.models.notification_log import (
    RESOLVABLE_STATUSES,
    NotificationLogEntry,
    NotificationStatus,
)
from payment_kernel.models.resolution import ReconciliationResolution
from payment_kernel.selectors.notification_log_selector import NotificationLogSelector
from payment_kernel.services.buffer_store import PaymentBufferStore
from payment_services.fulfillment import FulfillmentSignal, NullFulfillmentSignal

logger = get_logger("services.manual_reconciliation")


class ManualReconciliationService:
    """
    Operator-facing write access to the reconciliation queue.

    Usage:
        service = ManualReconciliationService(session_factory, clock)
        for entry in selector.list_unresolved():
            ...
        service.link(entry.id, chosen_buffer_id, resolved_by="support:mya")
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: ReconciliationConfig | None = None,
        fulfillment: FulfillmentSignal | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._fulfillment = fulfillment or NullFulfillmentSignal()

    def link(
        self,
        log_entry_id: UUID,
        buffer_id: UUID,
        resolved_by: str,
        note: str | None = None,
    ) -> ResolutionDTO:
        """
        Link an unresolved notification to a buffer and verify the buffer.

        Args:
            log_entry_id: The unmatched or ambiguous log entry.
            buffer_id: The buffer the operator identified.
            resolved_by: Operator identity, recorded on the resolution.
            note: Free-text justification.

        Returns:
            The committed resolution.
        """
        if not resolved_by:
            raise ValueError("resolved_by is required")

        with LogContext.bind(
            actor_id=resolved_by,
            notification_id=str(log_entry_id),
            buffer_id=str(buffer_id),
        ):
            session = self._session_factory()
            try:
                resolution = self._link(session, log_entry_id, buffer_id, resolved_by, note)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise LogEntryNotResolvableError(
                    str(log_entry_id), "unknown", "resolved concurrently"
                ) from e
            except DBAPIError as e:
                session.rollback()
                logger.error("store_unavailable", exc_info=True)
                raise StoreUnavailableError(
                    "link", str(getattr(e, "orig", None) or e)
                ) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

            with LogContext.bind(order_id=resolution.order_id):
                logger.info("manual_link_committed", extra={"note": note})
                self._emit_fulfillment(resolution)
            return resolution

    def _link(
        self,
        session: Session,
        log_entry_id: UUID,
        buffer_id: UUID,
        resolved_by: str,
        note: str | None,
    ) -> ResolutionDTO:
        entry = session.get(NotificationLogEntry, log_entry_id)
        if entry is None:
            raise LogEntryNotFoundError(str(log_entry_id))

        status = NotificationStatus(entry.status)
        if status not in RESOLVABLE_STATUSES:
            raise LogEntryNotResolvableError(
                str(log_entry_id), status.value, "only unmatched or ambiguous entries can be linked"
            )
        if NotificationLogSelector(session).resolution_for(log_entry_id) is not None:
            raise LogEntryNotResolvableError(str(log_entry_id), status.value, "already resolved")

        store = PaymentBufferStore(
            session,
            self._clock,
            currency=self._config.currency.code,
            decimal_places=self._config.currency.decimal_places,
        )
        buffer = store.get(buffer_id)
        if buffer is None:
            raise BufferNotFoundError(str(buffer_id))

        if entry.amount_minor is not None and (
            entry.amount_minor != buffer.amount_minor or entry.currency != buffer.currency
        ):
            logger.warning(
                "manual_link_amount_mismatch",
                extra={
                    "notification_amount": str(entry.extracted_amount),
                    "buffer_amount": str(buffer.expected_amount),
                },
            )

        verify = store.mark_verified(
            buffer.id, buffer.order_id, raw_notification_text=entry.message_content
        )
        if verify.status == VerifyStatus.ALREADY_VERIFIED:
            current = store.get(buffer_id)
            raise BufferAlreadyVerifiedError(
                str(buffer_id), current.linked_order_id if current else None
            )
        if verify.status == VerifyStatus.INELIGIBLE:
            current = store.get(buffer_id)
            raise BufferIneligibleError(
                str(buffer_id), current.ineligible_reason if current else None
            )
        if verify.status == VerifyStatus.NOT_FOUND:
            raise BufferNotFoundError(str(buffer_id))

        resolution = ReconciliationResolution(
            log_entry_id=entry.id,
            buffer_id=buffer.id,
            order_id=buffer.order_id,
            resolved_by=resolved_by,
            note=note,
            created_at=self._clock.now(),
        )
        session.add(resolution)
        session.flush()
        return ResolutionDTO.from_model(resolution)

    def _emit_fulfillment(self, resolution: ResolutionDTO) -> None:
        try:
            self._fulfillment.on_payment_verified(resolution.order_id)
        except Exception as e:
            logger.error("fulfillment_signal_failed", exc_info=True)
            raise FulfillmentSignalError(
                order_id=resolution.order_id,
                log_entry_id=str(resolution.log_entry_id),
                cause=str(e),
                outcome=resolution,
            ) from e
        logger.info("fulfillment_signalled")
