"""Partitions calculated payments into wallet-sized batches."""

from collections.abc import Sequence
from decimal import Decimal

from config import get_settings
from db.enums import BatchStatus, Currency, PaymentStatus, PaymentType
from hivepay.services._types import BatchProgressDict, TransferOperationBody
from hivepay.services.amounts import format_asset
from hivepay.services.entities import MAX_BATCH_SIZE, Payment, PaymentAmount, PaymentBatch
from hivepay.services.errors import BatchTooLargeError, EmptyRecipientListError
from hivepay.services.schemas.results import CalculatedPayment

TransferOperation = tuple[str, TransferOperationBody]

_DONE: frozenset[BatchStatus] = frozenset(
    {BatchStatus.COMPLETED, BatchStatus.PARTIALLY_FAILED, BatchStatus.FAILED, BatchStatus.CANCELLED}
)


def payable(payments: Sequence[CalculatedPayment]) -> list[CalculatedPayment]:
    """Drop rows that round to nothing; the chain rejects zero transfers."""
    return [p for p in payments if p.amount > 0]


def to_batches(
    payments: Sequence[CalculatedPayment],
    sender: str,
    currency: Currency | None = None,
    payment_type: PaymentType = PaymentType.CURATION_REWARD,
    max_size: int = MAX_BATCH_SIZE,
) -> list[PaymentBatch]:
    """Split ``payments`` into contiguous batches of at most ``max_size``, preserving order."""
    if max_size < 1 or max_size > MAX_BATCH_SIZE:
        raise BatchTooLargeError(f"max_size must be between 1 and {MAX_BATCH_SIZE}, got {max_size}")
    if not payments:
        raise EmptyRecipientListError("No payments to batch")
    code: Currency = currency or get_settings().payout.currency

    batches: list[PaymentBatch] = []
    for start in range(0, len(payments), max_size):
        chunk: Sequence[CalculatedPayment] = payments[start : start + max_size]
        members: list[Payment] = [
            Payment.create(
                sender=sender,
                recipient=row.recipient,
                amount=PaymentAmount.of(row.amount, code),
                memo=row.memo,
                payment_type=payment_type,
            )
            for row in chunk
        ]
        batches.append(PaymentBatch.create(members, max_size=max_size))
    return batches


def build_transfer_operations(
    batch: PaymentBatch, default_memo: str | None = None
) -> list[TransferOperation]:
    """The ordered operation list the wallet signs for one batch."""
    fallback: str = default_memo if default_memo is not None else get_settings().payout.default_memo
    return [
        (
            "transfer",
            TransferOperationBody(
                {
                    "from": p.sender,
                    "to": p.recipient,
                    "amount": p.amount.formatted(),
                    "memo": p.memo or fallback,
                }
            ),
        )
        for p in batch.payments
    ]


def batch_progress(batches: Sequence[PaymentBatch]) -> BatchProgressDict:
    completed_batches: int = sum(1 for b in batches if b.status in _DONE)
    current: int | None = next(
        (i for i, b in enumerate(batches) if b.status not in _DONE), None
    )
    processed: int = 0
    failed: int = 0
    remaining: int = 0
    remaining_amount: Decimal = Decimal(0)
    total_amount: Decimal = Decimal(0)
    for batch in batches:
        for p in batch.payments:
            total_amount += p.amount.value
            if p.status is PaymentStatus.COMPLETED:
                processed += 1
            elif p.status is PaymentStatus.FAILED:
                failed += 1
            elif p.status in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
                remaining += 1
                remaining_amount += p.amount.value

    code: Currency = batches[0].currency if batches else get_settings().payout.currency
    return BatchProgressDict(
        totalBatches=len(batches),
        completedBatches=completed_batches,
        currentBatch=current,
        processedPayments=processed,
        failedPayments=failed,
        remainingPayments=remaining,
        remainingAmount=format_asset(remaining_amount, code),
        totalAmount=format_asset(total_amount, code),
    )
