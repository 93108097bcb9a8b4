"""Kernel write services: payment buffers and the notification audit log."""

from payment_kernel.services.audit_log import NotificationAuditLog
from payment_kernel.services.base import BaseService
from payment_kernel.services.buffer_store import PaymentBufferStore

__all__ = [
    "BaseService",
    "PaymentBufferStore",
    "NotificationAuditLog",
]
