"""Orchestration services: automatic reconciliation, manual linking, fulfillment."""

from payment_services.fulfillment import (
    FulfillmentSignal,
    NullFulfillmentSignal,
    RecordingFulfillmentSignal,
)
from payment_services.manual_reconciliation_service import ManualReconciliationService
from payment_services.reconciliation_coordinator import (
    CLAIM_FAILURE_REASONS,
    ProcessingOutcome,
    ReconciliationCoordinator,
)

__all__ = [
    "CLAIM_FAILURE_REASONS",
    "FulfillmentSignal",
    "ManualReconciliationService",
    "NullFulfillmentSignal",
    "ProcessingOutcome",
    "ReconciliationCoordinator",
    "RecordingFulfillmentSignal",
]
