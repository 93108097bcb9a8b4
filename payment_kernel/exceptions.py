"""
Typed Exception Hierarchy for the Payment Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Reconciliation failures must be handled precisely. Callers catch by type and
read structured attributes; they never parse message strings.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Data-quality outcomes are NOT exceptions. An unmatched or ambiguous
notification, or a claim lost to a concurrent notification, is a normal
ProcessingOutcome recorded in the audit log. Exceptions are reserved for
conditions the caller must act on: a malformed notification inside the
extractor (caught by the coordinator), an operator error during manual
linking, or an unavailable store.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PaymentKernelError (base)
    |
    +-- ExtractionError
    |   +-- InvalidFormatError
    |
    +-- PaymentBufferError
    |   +-- BufferNotFoundError
    |   +-- BufferAlreadyVerifiedError
    |   +-- BufferIneligibleError
    |   +-- InvalidAmountError
    |
    +-- AuditLogError
    |   +-- LogEntryNotFoundError
    |   +-- LogEntryNotResolvableError
    |
    +-- StoreError
    |   +-- StoreUnavailableError
    |
    +-- FulfillmentError
    |   +-- FulfillmentSignalError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Extraction      | INVALID_FORMAT              | No plausible amount in notification text
----------------|-----------------------------|-----------------------------------------
Buffer          | BUFFER_NOT_FOUND            | Buffer ID doesn't exist
                | BUFFER_ALREADY_VERIFIED     | Manual link to a claimed buffer
                | BUFFER_INELIGIBLE           | Order expired/cancelled externally
                | INVALID_AMOUNT              | Zero, negative or unrepresentable amount
----------------|-----------------------------|-----------------------------------------
Audit log       | LOG_ENTRY_NOT_FOUND         | Log entry ID doesn't exist
                | LOG_ENTRY_NOT_RESOLVABLE    | Entry is matched/invalid/already resolved
----------------|-----------------------------|-----------------------------------------
Store           | STORE_UNAVAILABLE           | Transient database failure (retry call)
----------------|-----------------------------|-----------------------------------------
Fulfillment     | FULFILLMENT_SIGNAL_FAILED   | Order system rejected a committed match
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of an append-only record
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Invalid reconciliation configuration

===============================================================================
HANDLING PATTERNS
===============================================================================

1. STORE UNAVAILABLE IS A HARD FAILURE (retry the whole call):

    try:
        outcome = coordinator.process_notification(text, received_at)
    except StoreUnavailableError:
        requeue(text, received_at)  # nothing partial was committed

2. FULFILLMENT FAILURE IS AFTER COMMIT (the match is durable):

    except FulfillmentSignalError as e:
        alert_ops(order_id=e.order_id, log_entry_id=e.log_entry_id)
"""


class PaymentKernelError(Exception):
    """
    Base exception for all payment kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYMENT_KERNEL_ERROR"


# Extraction


class ExtractionError(PaymentKernelError):
    """Base exception for notification text extraction errors."""

    code: str = "EXTRACTION_ERROR"


class InvalidFormatError(ExtractionError):
    """Notification text does not contain a plausible payment amount."""

    code: str = "INVALID_FORMAT"

    def __init__(self, reason: str, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        message = f"Invalid notification format: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# Payment buffers


class PaymentBufferError(PaymentKernelError):
    """Base exception for payment buffer errors."""

    code: str = "BUFFER_ERROR"


class BufferNotFoundError(PaymentBufferError):
    """Payment buffer with given ID was not found."""

    code: str = "BUFFER_NOT_FOUND"

    def __init__(self, buffer_id: str):
        self.buffer_id = buffer_id
        super().__init__(f"Payment buffer not found: {buffer_id}")


class BufferAlreadyVerifiedError(PaymentBufferError):
    """Payment buffer was already claimed by another notification or operator."""

    code: str = "BUFFER_ALREADY_VERIFIED"

    def __init__(self, buffer_id: str, linked_order_id: str | None = None):
        self.buffer_id = buffer_id
        self.linked_order_id = linked_order_id
        super().__init__(
            f"Payment buffer {buffer_id} already verified"
            + (f" for order {linked_order_id}" if linked_order_id else "")
        )


class BufferIneligibleError(PaymentBufferError):
    """Payment buffer was marked ineligible (order expired or cancelled)."""

    code: str = "BUFFER_INELIGIBLE"

    def __init__(self, buffer_id: str, reason: str | None = None):
        self.buffer_id = buffer_id
        self.reason = reason
        super().__init__(
            f"Payment buffer {buffer_id} is not eligible for matching"
            + (f": {reason}" if reason else "")
        )


class InvalidAmountError(PaymentBufferError):
    """Expected amount is zero, negative, or finer than the currency minor unit."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


# Audit log


class AuditLogError(PaymentKernelError):
    """Base exception for notification audit log errors."""

    code: str = "AUDIT_LOG_ERROR"


class LogEntryNotFoundError(AuditLogError):
    """Notification log entry with given ID was not found."""

    code: str = "LOG_ENTRY_NOT_FOUND"

    def __init__(self, log_entry_id: str):
        self.log_entry_id = log_entry_id
        super().__init__(f"Notification log entry not found: {log_entry_id}")


class LogEntryNotResolvableError(AuditLogError):
    """Log entry cannot be manually linked (wrong status or already resolved)."""

    code: str = "LOG_ENTRY_NOT_RESOLVABLE"

    def __init__(self, log_entry_id: str, status: str, reason: str):
        self.log_entry_id = log_entry_id
        self.status = status
        self.reason = reason
        super().__init__(
            f"Notification log entry {log_entry_id} ({status}) cannot be linked: {reason}"
        )


# Store


class StoreError(PaymentKernelError):
    """Base exception for backing store errors."""

    code: str = "STORE_ERROR"


class StoreUnavailableError(StoreError):
    """
    Backing store failed transiently.

    Raised after the transaction was rolled back. Retrying the whole
    process_notification call is safe.
    """

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, cause: str):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store unavailable during {operation}: {cause}")


# Fulfillment


class FulfillmentError(PaymentKernelError):
    """Base exception for order fulfillment signalling errors."""

    code: str = "FULFILLMENT_ERROR"


class FulfillmentSignalError(FulfillmentError):
    """The order system raised while handling a committed payment match."""

    code: str = "FULFILLMENT_SIGNAL_FAILED"

    def __init__(self, order_id: str, log_entry_id: str, cause: str, outcome=None):
        self.order_id = order_id
        self.log_entry_id = log_entry_id
        self.cause = cause
        self._outcome = outcome
        super().__init__(
            f"Fulfillment signal failed for order {order_id} "
            f"(log entry {log_entry_id}): {cause}"
        )

    @property
    def outcome(self):
        """The committed ProcessingOutcome the signal was sent for."""
        return self._outcome


# Immutability


class ImmutabilityError(PaymentKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted modification of an append-only or finalized record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(PaymentKernelError):
    """Reconciliation configuration failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid configuration for '{field}': {reason}")
