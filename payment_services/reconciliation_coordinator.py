"""
ReconciliationCoordinator -- one inbound notification, one atomic decision.

Responsibility:
    Runs the whole pipeline for a single notification: deduplication,
    extraction, candidate lookup, matching, the atomic buffer claim and the
    audit log append, all in one database transaction.  After commit it
    sends the fulfillment signal for a verified payment.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes NotificationExtractor and PaymentMatcher (pure engines) with
    PaymentBufferStore and NotificationAuditLog (kernel I/O).  Owns the
    transaction boundary: opens one session per notification from the
    session factory, commits or rolls back, and closes it.

Invariants enforced:
    - Every notification ends in exactly one log entry with a terminal
      status (matched, ambiguous, unmatched, invalid).
    - At most one successful match per buffer: the claim is the store's
      compare-and-set, and a lost claim degrades to ``unmatched``.
    - The claim and the log entry commit together or not at all.
    - The fulfillment signal fires only for committed matches, once.
    - Duplicate deliveries (same dedup key) return the earlier outcome
      without writing, claiming or signalling again.

Failure modes:
    - StoreUnavailableError: the database failed; everything was rolled
      back and the call can be retried.
    - IntegrityError: a constraint other than the dedup key rejected the
      write.  Rolled back and re-raised unchanged; a retry would fail again.
    - FulfillmentSignalError: the order system raised after a match was
      committed.  The error carries the committed outcome.
    - Unmatched, ambiguous, invalid and lost-claim notifications are
      results, not exceptions.

Audit relevance:
    ``notification_processed`` is logged for every call with status,
    reason code, buffer, order and duration.  The log entry itself is the
    durable record support staff use for manual reconciliation.

Usage:
    coordinator = ReconciliationCoordinator(
        session_factory=get_session_factory(),
        clock=SystemClock(),
        config=get_active_config(),
        fulfillment=order_system_signal,
    )
    outcome = coordinator.process_notification(sms_text, received_at=arrived)
    if outcome.status == NotificationStatus.AMBIGUOUS:
        notify_support(outcome.log_entry_id)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from payment_config import ReconciliationConfig, get_active_config
from payment_config.bridges import build_grammar, build_matching_policy
from payment_engines.extraction import NotificationExtractor
from payment_engines.matching import PaymentMatcher
from payment_kernel.domain.clock import Clock, SystemClock
from payment_kernel.domain.dtos import VerifyStatus
from payment_kernel.exceptions import (
    FulfillmentSignalError,
    InvalidFormatError,
    StoreUnavailableError,
)
from payment_kernel.logging_config import LogContext, get_logger
from payment_kernel.models.notification_log import (
    NotificationLogEntry,
    NotificationStatus,
)
from payment_kernel.services.audit_log import NotificationAuditLog
from payment_kernel.services.buffer_store import PaymentBufferStore
from payment_kernel.utils.idempotency import generate_dedup_key
from payment_services.fulfillment import FulfillmentSignal, NullFulfillmentSignal

logger = get_logger("services.reconciliation_coordinator")

# Reason codes for a matched buffer that could not be claimed
CLAIM_FAILURE_REASONS: dict[VerifyStatus, str] = {
    VerifyStatus.ALREADY_VERIFIED: "claim_lost",
    VerifyStatus.INELIGIBLE: "claim_ineligible",
    VerifyStatus.NOT_FOUND: "claim_not_found",
}


@dataclass(frozen=True)
class ProcessingOutcome:
    """
    Result of processing one notification.

    Mirrors the log entry that was written (or, for a duplicate delivery,
    the entry written the first time).
    """

    log_entry_id: UUID
    status: NotificationStatus
    reason_code: str | None = None
    buffer_id: UUID | None = None
    order_id: str | None = None
    candidate_buffer_ids: tuple[UUID, ...] = ()
    amount: Decimal | None = None
    transaction_id: str | None = None
    sender_name: str | None = None
    duplicate: bool = False

    @classmethod
    def from_entry(
        cls,
        entry: NotificationLogEntry,
        duplicate: bool = False,
    ) -> ProcessingOutcome:
        return cls(
            log_entry_id=entry.id,
            status=NotificationStatus(entry.status),
            reason_code=entry.reason_code,
            buffer_id=entry.buffer_id,
            order_id=entry.matched_order_id,
            candidate_buffer_ids=tuple(
                UUID(str(b)) for b in (entry.candidate_buffer_ids or ())
            ),
            amount=entry.extracted_amount,
            transaction_id=entry.transaction_id,
            sender_name=entry.sender_name,
            duplicate=duplicate,
        )

    @property
    def is_matched(self) -> bool:
        return self.status == NotificationStatus.MATCHED


class ReconciliationCoordinator:
    """
    Processes inbound payment notifications.

    Contract:
        ``process_notification`` may be called concurrently from many
        threads; each call uses its own session.  Matching runs in
        parallel and only the buffer claim is serialized (by the database).

    Non-goals:
        - Does NOT retry lost claims or wait on other notifications.
        - Does NOT expire buffers; the order system calls
          ``PaymentBufferStore.mark_ineligible``.
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
        self._extractor = NotificationExtractor(build_grammar(self._config))
        self._matcher = PaymentMatcher(build_matching_policy(self._config))

    @property
    def config(self) -> ReconciliationConfig:
        return self._config

    def process_notification(
        self,
        raw_text: str,
        received_at: datetime | None = None,
        sender: str | None = None,
    ) -> ProcessingOutcome:
        """
        Process one notification end to end.

        Args:
            raw_text: Notification text exactly as delivered.
            received_at: Arrival time (timezone-aware).  Defaults to now.
            sender: Channel-reported sender (short code, phone number).

        Returns:
            ProcessingOutcome describing the committed log entry.

        Raises:
            StoreUnavailableError: database failure; nothing was committed.
            IntegrityError: a non-dedup constraint rejected the write; nothing was committed.
            FulfillmentSignalError: the order system rejected a committed match.
        """
        received_at = received_at or self._clock.now()
        if received_at.tzinfo is None:
            raise ValueError("received_at must be timezone-aware")
        raw_text = raw_text or ""

        dedup_key = None
        if self._config.dedup.enabled:
            dedup_key = generate_dedup_key(
                raw_text, received_at, self._config.dedup.bucket_seconds
            )

        with LogContext.bind(correlation_id=str(uuid4())):
            t0 = time.monotonic()
            logger.info(
                "notification_received",
                extra={"sender": sender, "text_length": len(raw_text)},
            )

            outcome = self._process_in_transaction(
                raw_text, received_at, sender, dedup_key
            )

            with LogContext.bind(
                notification_id=str(outcome.log_entry_id),
                buffer_id=str(outcome.buffer_id) if outcome.buffer_id else None,
                order_id=outcome.order_id,
            ):
                logger.info(
                    "notification_processed",
                    extra={
                        "status": outcome.status.value,
                        "reason_code": outcome.reason_code,
                        "duplicate": outcome.duplicate,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )

                if outcome.is_matched and not outcome.duplicate:
                    self._emit_fulfillment(outcome)

            return outcome

    # -------------------------------------------------------------------------
    # Transaction
    # -------------------------------------------------------------------------

    def _process_in_transaction(
        self,
        raw_text: str,
        received_at: datetime,
        sender: str | None,
        dedup_key: str | None,
    ) -> ProcessingOutcome:
        session = self._session_factory()
        try:
            try:
                outcome = self._process(session, raw_text, received_at, sender, dedup_key)
                session.commit()
                return outcome
            except IntegrityError:
                # A concurrent delivery of the same notification committed first
                session.rollback()
                existing = self._find_duplicate(session, dedup_key)
                if existing is None:
                    raise
                logger.info("duplicate_notification_race", extra={"dedup_key": dedup_key})
                return existing
        except IntegrityError:
            # Constraint violation other than the dedup key
            session.rollback()
            logger.error("store_integrity_error", exc_info=True)
            raise
        except DBAPIError as e:
            session.rollback()
            logger.error("store_unavailable", exc_info=True)
            raise StoreUnavailableError(
                "process_notification", str(getattr(e, "orig", None) or e)
            ) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _find_duplicate(
        self,
        session: Session,
        dedup_key: str | None,
    ) -> ProcessingOutcome | None:
        if dedup_key is None:
            return None
        entry = NotificationAuditLog(session, self._clock).find_by_dedup_key(dedup_key)
        if entry is None:
            return None
        return ProcessingOutcome.from_entry(entry, duplicate=True)

    def _process(
        self,
        session: Session,
        raw_text: str,
        received_at: datetime,
        sender: str | None,
        dedup_key: str | None,
    ) -> ProcessingOutcome:
        audit = NotificationAuditLog(session, self._clock)
        store = PaymentBufferStore(
            session,
            self._clock,
            currency=self._config.currency.code,
            decimal_places=self._config.currency.decimal_places,
        )

        duplicate = self._find_duplicate(session, dedup_key)
        if duplicate is not None:
            logger.info("duplicate_notification", extra={"dedup_key": dedup_key})
            return duplicate

        record = {
            "message_content": raw_text,
            "received_at": received_at,
            "sender": sender,
            "dedup_key": dedup_key,
        }

        try:
            candidate = self._extractor.extract(raw_text=raw_text, received_at=received_at)
        except InvalidFormatError as e:
            entry = audit.record(
                status=NotificationStatus.INVALID, reason_code=e.reason, **record
            )
            return ProcessingOutcome.from_entry(entry)

        record["candidate"] = candidate
        buffers = store.find_unverified_candidates(
            candidate.amount,
            within_window=self._config.matching.matching_window,
            as_of=received_at,
            currency=candidate.currency,
        )
        result = self._matcher.match(candidate=candidate, buffers=buffers)

        if result.is_ambiguous:
            entry = audit.record(
                status=NotificationStatus.AMBIGUOUS,
                reason_code=result.rule.value,
                candidate_buffer_ids=list(result.candidate_buffer_ids),
                **record,
            )
            return ProcessingOutcome.from_entry(entry)

        if not result.is_matched:
            entry = audit.record(
                status=NotificationStatus.UNMATCHED,
                reason_code=result.rule.value,
                **record,
            )
            return ProcessingOutcome.from_entry(entry)

        buffer = next(b for b in buffers if b.id == result.buffer_id)
        verify = store.mark_verified(
            buffer.id, buffer.order_id, raw_notification_text=raw_text
        )
        if not verify.claimed:
            entry = audit.record(
                status=NotificationStatus.UNMATCHED,
                reason_code=CLAIM_FAILURE_REASONS[verify.status],
                candidate_buffer_ids=[buffer.id],
                **record,
            )
            return ProcessingOutcome.from_entry(entry)

        entry = audit.record(
            status=NotificationStatus.MATCHED,
            reason_code=result.rule.value,
            buffer_id=buffer.id,
            matched_order_id=buffer.order_id,
            **record,
        )
        return ProcessingOutcome.from_entry(entry)

    # -------------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------------

    def _emit_fulfillment(self, outcome: ProcessingOutcome) -> None:
        try:
            self._fulfillment.on_payment_verified(outcome.order_id)
        except Exception as e:
            logger.error(
                "fulfillment_signal_failed",
                extra={"log_entry_id": str(outcome.log_entry_id)},
                exc_info=True,
            )
            raise FulfillmentSignalError(
                order_id=outcome.order_id,
                log_entry_id=str(outcome.log_entry_id),
                cause=str(e),
                outcome=outcome,
            ) from e
        logger.info("fulfillment_signalled")
