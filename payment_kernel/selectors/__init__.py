"""Read-only selectors for notifications and payment buffers."""

from payment_kernel.selectors.base import BaseSelector
from payment_kernel.selectors.buffer_selector import PaymentBufferSelector
from payment_kernel.selectors.notification_log_selector import NotificationLogSelector

__all__ = [
    "BaseSelector",
    "NotificationLogSelector",
    "PaymentBufferSelector",
]
