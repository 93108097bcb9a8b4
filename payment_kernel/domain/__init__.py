"""Pure domain types for the payment kernel: clock, money values and DTOs."""

from payment_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payment_kernel.domain.dtos import (
    LogEntryDTO,
    NotificationCandidate,
    PaymentBufferDTO,
    ResolutionDTO,
    VerifyResult,
    VerifyStatus,
)
from payment_kernel.domain.values import Money

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Money",
    "NotificationCandidate",
    "PaymentBufferDTO",
    "LogEntryDTO",
    "ResolutionDTO",
    "VerifyResult",
    "VerifyStatus",
]
