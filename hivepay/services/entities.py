"""Payment and PaymentBatch aggregates with their lifecycle state machines."""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from db.enums import BatchStatus, Currency, PaymentStatus, PaymentType
from hivepay.services._helpers import AMOUNT_QUANTUM, new_id, now_iso
from hivepay.services.amounts import format_asset
from hivepay.services.errors import (
    BatchConsistencyError,
    BatchTooLargeError,
    CurrencyMismatchError,
    DuplicateRecipientError,
    EmptyBatchError,
    InvalidAmountError,
    InvalidMemoError,
    InvalidStatusTransition,
    InvalidUsernameError,
    MixedCurrencyError,
    MixedSendersError,
    NonPendingPaymentError,
    PaymentValidationError,
    SelfTransferError,
)

MAX_BATCH_SIZE: int = 30
MAX_MEMO_LENGTH: int = 2048
MAX_AMOUNT: Decimal = Decimal(1_000_000_000)

_USERNAME_CHARS: re.Pattern[str] = re.compile(r"^[a-z0-9.-]+$")

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING, PaymentStatus.CANCELLED}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.COMPLETED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}

BATCH_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.PENDING: frozenset({BatchStatus.PROCESSING, BatchStatus.CANCELLED}),
    BatchStatus.PROCESSING: frozenset(
        {BatchStatus.COMPLETED, BatchStatus.PARTIALLY_FAILED, BatchStatus.FAILED}
    ),
    BatchStatus.COMPLETED: frozenset(),
    BatchStatus.PARTIALLY_FAILED: frozenset(),
    BatchStatus.FAILED: frozenset(),
    BatchStatus.CANCELLED: frozenset(),
}


# ── Value objects ─────────────────────────────────────────────────────────────


def normalize_username(raw: str) -> str:
    """Lower-case and validate a Hive account name."""
    name: str = (raw or "").strip().lower()
    if not 3 <= len(name) <= 16:
        raise InvalidUsernameError(f"Username must be 3-16 characters: {raw!r}")
    if not _USERNAME_CHARS.match(name):
        raise InvalidUsernameError(f"Username may only contain a-z, 0-9, '.' and '-': {raw!r}")
    if name[0] in ".-" or name[-1] in ".-":
        raise InvalidUsernameError(f"Username cannot start or end with '.' or '-': {raw!r}")
    if ".." in name or "--" in name:
        raise InvalidUsernameError(f"Username cannot contain '..' or '--': {raw!r}")
    return name


def normalize_memo(raw: str | None) -> str:
    memo: str = (raw or "").strip()
    if len(memo) > MAX_MEMO_LENGTH:
        raise InvalidMemoError(f"Memo exceeds {MAX_MEMO_LENGTH} characters ({len(memo)})")
    return memo


def truncate_memo(raw: str, max_length: int = MAX_MEMO_LENGTH) -> str:
    memo: str = raw.strip()
    if len(memo) <= max_length:
        return memo
    return memo[: max_length - 3] + "..."


def curation_memo(period: str, percentage: Decimal, template: str) -> str:
    return truncate_memo(template.format(period=period, percentage=float(percentage)))


def delegation_memo(hp: Decimal) -> str:
    return f"🌱 Aliento Pay - Delegation Rewards - Based on {float(hp):.0f} HP delegated"


@dataclass(frozen=True)
class PaymentAmount:
    value: Decimal
    currency: Currency = Currency.HIVE

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal):
            object.__setattr__(self, "value", Decimal(str(self.value)))
        if not self.value.is_finite():
            raise InvalidAmountError(f"Amount must be finite: {self.value}")
        if self.value < 0:
            raise InvalidAmountError(f"Amount cannot be negative: {self.value}")
        if self.value > MAX_AMOUNT:
            raise InvalidAmountError(f"Amount exceeds {MAX_AMOUNT}: {self.value}")
        if self.value.normalize().as_tuple().exponent < -3:
            raise InvalidAmountError(f"Amount has more than 3 decimals: {self.value}")
        object.__setattr__(self, "value", self.value.quantize(AMOUNT_QUANTUM))

    @classmethod
    def of(cls, value: Decimal | int | str, currency: Currency | str = Currency.HIVE) -> "PaymentAmount":
        try:
            amount = Decimal(str(value))
            code = Currency(currency)
        except (InvalidOperation, ValueError) as e:
            raise InvalidAmountError(f"Invalid amount: {value!r} {currency!r}") from e
        return cls(amount, code)

    @classmethod
    def zero(cls, currency: Currency = Currency.HIVE) -> "PaymentAmount":
        return cls(Decimal("0.000"), currency)

    def _check_currency(self, other: "PaymentAmount") -> None:
        if other.currency is not self.currency:
            raise CurrencyMismatchError(
                f"Cannot combine {self.currency.value} with {other.currency.value}"
            )

    def add(self, other: "PaymentAmount") -> "PaymentAmount":
        self._check_currency(other)
        return PaymentAmount(self.value + other.value, self.currency)

    def subtract(self, other: "PaymentAmount") -> "PaymentAmount":
        self._check_currency(other)
        return PaymentAmount(self.value - other.value, self.currency)

    def is_zero(self) -> bool:
        return self.value == 0

    def formatted(self) -> str:
        return format_asset(self.value, self.currency)


# ── Payment ───────────────────────────────────────────────────────────────────


@dataclass
class Payment:
    id: str
    sender: str
    recipient: str
    amount: PaymentAmount
    memo: str
    payment_type: PaymentType
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: str = field(default_factory=now_iso)
    processed_at: str | None = None
    transaction_id: str | None = None
    error_message: str | None = None

    @classmethod
    def create(
        cls,
        sender: str,
        recipient: str,
        amount: PaymentAmount,
        memo: str | None = "",
        payment_type: PaymentType = PaymentType.SINGLE_TRANSFER,
    ) -> "Payment":
        from_name: str = normalize_username(sender)
        to_name: str = normalize_username(recipient)
        if from_name == to_name:
            raise SelfTransferError(f"Cannot transfer to self: {from_name}")
        if amount.value < AMOUNT_QUANTUM:
            raise InvalidAmountError(f"Amount must be at least {AMOUNT_QUANTUM}: {amount.value}")
        return cls(
            id=new_id("pay_"),
            sender=from_name,
            recipient=to_name,
            amount=amount,
            memo=normalize_memo(memo),
            payment_type=payment_type,
        )

    def _transition(self, target: PaymentStatus) -> None:
        if target not in PAYMENT_TRANSITIONS[self.status]:
            raise InvalidStatusTransition("payment", self.status.value, target.value)
        self.status = target

    def start_processing(self) -> None:
        self._transition(PaymentStatus.PROCESSING)

    def mark_completed(self, transaction_id: str) -> None:
        if not transaction_id:
            raise PaymentValidationError("A transaction id is required to complete a payment")
        self._transition(PaymentStatus.COMPLETED)
        self.transaction_id = transaction_id
        self.processed_at = now_iso()
        self.error_message = None

    def mark_failed(self, error: str) -> None:
        self._transition(PaymentStatus.FAILED)
        self.error_message = error
        self.processed_at = now_iso()

    def cancel(self) -> None:
        self._transition(PaymentStatus.CANCELLED)

    def retry(self) -> None:
        self._transition(PaymentStatus.PENDING)
        self.error_message = None
        self.processed_at = None
        self.transaction_id = None

    @property
    def is_terminal(self) -> bool:
        return not PAYMENT_TRANSITIONS[self.status]

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount.value),
            "currency": self.amount.currency.value,
            "memo": self.memo,
            "type": self.payment_type.value,
            "status": self.status.value,
            "createdAt": self.created_at,
            "processedAt": self.processed_at,
            "transactionId": self.transaction_id,
            "errorMessage": self.error_message,
        }


# ── PaymentBatch ──────────────────────────────────────────────────────────────


def _check_batch_members(payments: list[Payment], max_size: int) -> None:
    if not payments:
        raise EmptyBatchError("A batch needs at least one payment")
    if len(payments) > max_size:
        raise BatchTooLargeError(f"A batch holds at most {max_size} payments, got {len(payments)}")
    senders: set[str] = {p.sender for p in payments}
    if len(senders) > 1:
        raise MixedSendersError(f"Batch mixes senders: {sorted(senders)}")
    currencies: set[Currency] = {p.amount.currency for p in payments}
    if len(currencies) > 1:
        raise MixedCurrencyError(f"Batch mixes currencies: {sorted(c.value for c in currencies)}")
    not_pending: list[str] = [p.id for p in payments if p.status is not PaymentStatus.PENDING]
    if not_pending:
        raise NonPendingPaymentError(f"Payments not pending: {not_pending}")
    seen: set[str] = set()
    for p in payments:
        if p.recipient in seen:
            raise DuplicateRecipientError(f"Recipient appears twice in batch: {p.recipient}")
        seen.add(p.recipient)


@dataclass
class PaymentBatch:
    id: str
    created_by: str
    payments: list[Payment]
    status: BatchStatus = BatchStatus.PENDING
    created_at: str = field(default_factory=now_iso)
    processed_at: str | None = None
    transaction_id: str | None = None
    error_message: str | None = None

    @classmethod
    def create(cls, payments: Iterable[Payment], max_size: int = MAX_BATCH_SIZE) -> "PaymentBatch":
        members: list[Payment] = list(payments)
        _check_batch_members(members, min(max_size, MAX_BATCH_SIZE))
        return cls(id=new_id("batch_"), created_by=members[0].sender, payments=members)

    @property
    def currency(self) -> Currency:
        return self.payments[0].amount.currency

    def _transition(self, target: BatchStatus) -> None:
        if target not in BATCH_TRANSITIONS[self.status]:
            raise InvalidStatusTransition("batch", self.status.value, target.value)
        self.status = target

    def _members_in(self, status: PaymentStatus) -> list[Payment]:
        return [p for p in self.payments if p.status is status]

    def start_processing(self) -> None:
        self._transition(BatchStatus.PROCESSING)
        for payment in self.payments:
            payment.start_processing()

    def mark_completed(self, transaction_id: str) -> None:
        if not transaction_id:
            raise PaymentValidationError("A transaction id is required to complete a batch")
        self._transition(BatchStatus.COMPLETED)
        for payment in self._members_in(PaymentStatus.PROCESSING):
            payment.mark_completed(transaction_id)
        self.transaction_id = transaction_id
        self.processed_at = now_iso()
        self.error_message = None

    def mark_failed(self, error: str) -> None:
        self._transition(BatchStatus.FAILED)
        for payment in self._members_in(PaymentStatus.PROCESSING):
            payment.mark_failed(error)
        self.error_message = error
        self.processed_at = now_iso()

    def mark_partially_failed(
        self,
        completed_ids: Iterable[str],
        failed_ids: Iterable[str],
        transaction_id: str,
        error: str,
    ) -> None:
        """Record a split outcome; the two id sets must partition the batch exactly."""
        completed: set[str] = set(completed_ids)
        failed: set[str] = set(failed_ids)
        members: set[str] = {p.id for p in self.payments}
        if completed & failed:
            overlap: list[str] = sorted(completed & failed)
            raise BatchConsistencyError(f"Payments both completed and failed: {overlap}")
        if completed | failed != members:
            raise BatchConsistencyError("Completed and failed payments must cover the whole batch")
        if not completed or not failed:
            raise BatchConsistencyError(
                "A partial failure needs at least one completed and one failed payment"
            )
        if not transaction_id:
            raise PaymentValidationError("A transaction id is required for completed payments")

        self._transition(BatchStatus.PARTIALLY_FAILED)
        for payment in self.payments:
            if payment.id in completed:
                payment.mark_completed(transaction_id)
            else:
                payment.mark_failed(error)
        self.transaction_id = transaction_id
        self.error_message = error
        self.processed_at = now_iso()

    def cancel(self) -> None:
        self._transition(BatchStatus.CANCELLED)
        for payment in self._members_in(PaymentStatus.PENDING):
            payment.cancel()

    # -- Queries ---------------------------------------------------------------

    @property
    def total_amount(self) -> PaymentAmount:
        total: PaymentAmount = PaymentAmount.zero(self.currency)
        for payment in self.payments:
            total = total.add(payment.amount)
        return total

    @property
    def completed_payments(self) -> list[Payment]:
        return self._members_in(PaymentStatus.COMPLETED)

    @property
    def failed_payments(self) -> list[Payment]:
        return self._members_in(PaymentStatus.FAILED)

    @property
    def pending_payments(self) -> list[Payment]:
        return self._members_in(PaymentStatus.PENDING)

    @property
    def success_rate(self) -> Decimal:
        if not self.payments:
            return Decimal(0)
        return Decimal(len(self.completed_payments)) * 100 / Decimal(len(self.payments))

    @property
    def is_terminal(self) -> bool:
        return not BATCH_TRANSITIONS[self.status]

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "createdBy": self.created_by,
            "status": self.status.value,
            "currency": self.currency.value,
            "totalAmount": self.total_amount.formatted(),
            "paymentCount": len(self.payments),
            "createdAt": self.created_at,
            "processedAt": self.processed_at,
            "transactionId": self.transaction_id,
            "errorMessage": self.error_message,
            "payments": [p.to_dict() for p in self.payments],
        }
