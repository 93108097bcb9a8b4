"""Domain models for the payment kernel."""

from payment_kernel.models.notification_log import (
    RESOLVABLE_STATUSES,
    TERMINAL_STATUSES,
    NotificationLogEntry,
    NotificationStatus,
)
from payment_kernel.models.payment_buffer import PaymentBuffer
from payment_kernel.models.resolution import ReconciliationResolution

__all__ = [
    "PaymentBuffer",
    "NotificationLogEntry",
    "NotificationStatus",
    "TERMINAL_STATUSES",
    "RESOLVABLE_STATUSES",
    "ReconciliationResolution",
]
