"""
payment_services.fulfillment -- Outbound signal to the order system.

Responsibility:
    Defines the FulfillmentSignal protocol the order system implements to
    learn that a mobile-money payment was verified, plus two stock
    implementations: a no-op and an in-memory recorder.

Contract:
    ``on_payment_verified(order_id)`` is called exactly once per verified
    buffer, after the claim and its log entry are committed.  An exception
    raised by the implementation surfaces to the caller as
    FulfillmentSignalError; the committed match is never rolled back.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from payment_kernel.logging_config import get_logger

logger = get_logger("services.fulfillment")


@runtime_checkable
class FulfillmentSignal(Protocol):
    """Order-system hook invoked when a payment is verified."""

    def on_payment_verified(self, order_id: str) -> None: ...


class NullFulfillmentSignal:
    """Signal that only logs.  Used when no order system is wired in."""

    def on_payment_verified(self, order_id: str) -> None:
        logger.info("fulfillment_signal_skipped", extra={"order_id": order_id})


class RecordingFulfillmentSignal:
    """
    Thread-safe signal that records every order id it receives.

    Useful in tests and for the command-line tool, which prints the orders
    it would have released.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._order_ids: list[str] = []

    def on_payment_verified(self, order_id: str) -> None:
        with self._lock:
            self._order_ids.append(order_id)

    @property
    def order_ids(self) -> list[str]:
        with self._lock:
            return list(self._order_ids)

    def count(self, order_id: str) -> int:
        with self._lock:
            return self._order_ids.count(order_id)
