"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through reconciliation:
    NotificationCandidate (extractor output), PaymentBufferDTO and LogEntryDTO
    (persistence boundary), ResolutionDTO, and the VerifyResult returned by
    the atomic claim.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters, invoked only from
    services and selectors (never from extraction or matching code).

Invariants enforced:
    - Domain logic accepts and returns DTOs, never ORM entities.
    - Amounts are Decimal in major units alongside their integer minor units.

Data flow:
    raw text -> NotificationCandidate -> MatchResult -> VerifyResult -> LogEntryDTO
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from payment_kernel.domain.values import from_minor_units

if TYPE_CHECKING:
    from payment_kernel.models.notification_log import NotificationLogEntry
    from payment_kernel.models.payment_buffer import PaymentBuffer
    from payment_kernel.models.resolution import ReconciliationResolution


@dataclass(frozen=True)
class NotificationCandidate:
    """
    Structured fields extracted from one inbound notification.

    Contract:
        Produced fresh per notification by the extractor.  ``amount`` is
        already rounded to the currency's minor unit and is strictly positive.
    """

    amount: Decimal
    amount_minor: int
    currency: str
    decimal_places: int
    raw_text: str
    received_at: datetime | None = None
    transaction_id: str | None = None
    sender_name: str | None = None


@dataclass(frozen=True)
class PaymentBufferDTO:
    """Immutable snapshot of a payment buffer row."""

    id: UUID
    expected_amount: Decimal
    amount_minor: int
    currency: str
    minor_unit_exponent: int
    order_id: str
    created_at: datetime
    verified: bool = False
    eligible: bool = True
    transaction_id: str | None = None
    sender_name: str | None = None
    raw_notification_text: str | None = None
    verified_at: datetime | None = None
    linked_order_id: str | None = None
    ineligible_reason: str | None = None
    ineligible_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        """True while the buffer can still be claimed."""
        return not self.verified and self.eligible

    @classmethod
    def from_model(cls, model: PaymentBuffer) -> PaymentBufferDTO:
        return cls(
            id=model.id,
            expected_amount=from_minor_units(model.amount_minor, model.minor_unit_exponent),
            amount_minor=model.amount_minor,
            currency=model.currency,
            minor_unit_exponent=model.minor_unit_exponent,
            order_id=model.order_id,
            created_at=model.created_at,
            verified=model.verified,
            eligible=model.eligible,
            transaction_id=model.transaction_id,
            sender_name=model.sender_name,
            raw_notification_text=model.raw_notification_text,
            verified_at=model.verified_at,
            linked_order_id=model.linked_order_id,
            ineligible_reason=model.ineligible_reason,
            ineligible_at=model.ineligible_at,
        )


class VerifyStatus(str, Enum):
    """Outcome of the compare-and-set claim on a buffer."""

    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    NOT_FOUND = "not_found"
    INELIGIBLE = "ineligible"


@dataclass(frozen=True)
class VerifyResult:
    """
    Result of PaymentBufferStore.mark_verified.

    Guarantees:
        ``status == VERIFIED`` for exactly one caller per buffer, ever.
    """

    status: VerifyStatus
    buffer_id: UUID
    order_id: str | None = None
    verified_at: datetime | None = None

    @property
    def claimed(self) -> bool:
        return self.status == VerifyStatus.VERIFIED


@dataclass(frozen=True)
class LogEntryDTO:
    """Immutable snapshot of a notification log entry."""

    id: UUID
    status: str
    message_content: str
    received_at: datetime
    created_at: datetime
    sender: str | None = None
    extracted_amount: Decimal | None = None
    currency: str | None = None
    transaction_id: str | None = None
    sender_name: str | None = None
    reason_code: str | None = None
    matched_order_id: str | None = None
    buffer_id: UUID | None = None
    candidate_buffer_ids: tuple[UUID, ...] = ()
    dedup_key: str | None = None

    @classmethod
    def from_model(cls, model: NotificationLogEntry) -> LogEntryDTO:
        status = model.status
        return cls(
            id=model.id,
            status=status.value if isinstance(status, Enum) else status,
            message_content=model.message_content,
            received_at=model.received_at,
            created_at=model.created_at,
            sender=model.sender,
            extracted_amount=model.extracted_amount,
            currency=model.currency,
            transaction_id=model.transaction_id,
            sender_name=model.sender_name,
            reason_code=model.reason_code,
            matched_order_id=model.matched_order_id,
            buffer_id=model.buffer_id,
            candidate_buffer_ids=tuple(
                UUID(str(value)) for value in (model.candidate_buffer_ids or ())
            ),
            dedup_key=model.dedup_key,
        )


@dataclass(frozen=True)
class ResolutionDTO:
    """Immutable snapshot of a manual reconciliation decision."""

    id: UUID
    log_entry_id: UUID
    buffer_id: UUID
    order_id: str
    resolved_by: str
    created_at: datetime
    note: str | None = None

    @classmethod
    def from_model(cls, model: ReconciliationResolution) -> ResolutionDTO:
        return cls(
            id=model.id,
            log_entry_id=model.log_entry_id,
            buffer_id=model.buffer_id,
            order_id=model.order_id,
            resolved_by=model.resolved_by,
            created_at=model.created_at,
            note=model.note,
        )
