"""Shared exception hierarchy for hivepay services."""

# ── Validation ────────────────────────────────────────────────────────────────


class PaymentValidationError(Exception):
    """Input rejected before any state mutation."""


class InvalidUsernameError(PaymentValidationError):
    """Not a valid Hive account name."""


class InvalidAmountError(PaymentValidationError):
    """Amount is negative, too precise, or out of range."""


class InvalidMemoError(PaymentValidationError):
    """Memo exceeds the transfer memo limit."""


class InvalidFiltersError(PaymentValidationError):
    """Distribution filters are out of range."""


class InvalidPercentageConfigError(PaymentValidationError):
    """Base/min/max percentages are inconsistent."""


class SelfTransferError(PaymentValidationError):
    """Sender and recipient are the same account."""


class EmptyRecipientListError(PaymentValidationError):
    """A multi-transfer request named no recipients."""


# ── Data source ───────────────────────────────────────────────────────────────


class DataSourceError(Exception):
    """Base exception for ledger data source errors."""


class RatioSourceError(DataSourceError):
    """Global properties could not be read."""


class HistorySourceError(DataSourceError):
    """Account history could not be read."""


# ── Calculation ───────────────────────────────────────────────────────────────


class CalculationError(Exception):
    """Base exception for errors that depend on fetched data."""


class ZeroTotalAmountError(CalculationError):
    """No HP survived filtering but a distribution was required."""


class CalculationOverflowError(CalculationError):
    """A computed amount exceeds the sanity ceiling."""


class InsufficientDataError(CalculationError):
    """Required data is missing."""


# ── Gateway ───────────────────────────────────────────────────────────────────


class PaymentGatewayError(Exception):
    """Base exception for signing/broadcast failures."""

    code: str = "GATEWAY_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code:
            self.code = code


class GatewayUnavailableError(PaymentGatewayError):
    """Wallet or broadcast service is not reachable."""

    code = "GATEWAY_UNAVAILABLE"

    def __init__(self, message: str = "Payment gateway is not available") -> None:
        super().__init__(message)


class InsufficientBalanceError(PaymentGatewayError):
    """Sender balance does not cover the transfer."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(self, required: str, available: str) -> None:
        super().__init__(f"Insufficient balance: required {required}, available {available}")
        self.required = required
        self.available = available


class TransactionFailedError(PaymentGatewayError):
    """Broadcast was rejected."""

    code = "TRANSACTION_FAILED"


class PaymentTimeoutError(PaymentGatewayError):
    """Gateway call did not finish in time."""

    code = "PAYMENT_TIMEOUT"

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Payment timed out after {int(timeout_seconds * 1000)}ms")
        self.timeout_seconds = timeout_seconds


# ── Consistency ───────────────────────────────────────────────────────────────


class BatchConsistencyError(Exception):
    """Batch invariants violated at construction time."""


class EmptyBatchError(BatchConsistencyError):
    """Batch has no payments."""


class BatchTooLargeError(BatchConsistencyError):
    """Batch exceeds the per-signature operation cap."""


class MixedSendersError(BatchConsistencyError):
    """Payments in one batch come from different senders."""


class MixedCurrencyError(BatchConsistencyError):
    """Payments in one batch use different currencies."""


class NonPendingPaymentError(BatchConsistencyError):
    """A payment added to a batch is not pending."""


class DuplicateRecipientError(BatchConsistencyError):
    """A recipient appears twice in one batch."""


class CurrencyMismatchError(BatchConsistencyError):
    """Arithmetic across different currencies."""


# ── Lifecycle ─────────────────────────────────────────────────────────────────


class InvalidStatusTransition(Exception):
    """Attempted a state change outside the transition table."""

    def __init__(self, entity: str, from_status: str, to_status: str) -> None:
        super().__init__(f"Invalid {entity} status transition: {from_status} -> {to_status}")
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status


# ── Repository ────────────────────────────────────────────────────────────────


class RepositoryError(Exception):
    """Base exception for persistence lookups."""


class PaymentNotFoundError(RepositoryError):
    """No payment with the given id."""


class BatchNotFoundError(RepositoryError):
    """No batch with the given id."""
