"""Payout execution: submits batches through the gateway and records outcomes."""

import asyncio
from collections.abc import Sequence
from decimal import Decimal

import structlog

from config import get_settings
from db.enums import BatchStatus, Currency, PaymentStatus, PaymentType
from hivepay.services._types import PaymentHistoryDict, PaymentStatsDict
from hivepay.services.entities import Payment, PaymentAmount, PaymentBatch
from hivepay.services.errors import (
    BatchNotFoundError,
    GatewayUnavailableError,
    InsufficientBalanceError,
    InvalidAmountError,
    PaymentGatewayError,
    PaymentNotFoundError,
    PaymentTimeoutError,
)
from hivepay.services.ports import PaymentGateway, PaymentRepository
from hivepay.services.repository import SqlPaymentRepository
from hivepay.services.schemas.chain import AccountBalance
from hivepay.services.schemas.results import BatchOutcome, BatchResult, ExecutionReport

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

MIN_TRANSFER: Decimal = Decimal("0.001")
MAX_SINGLE_TRANSFER: Decimal = Decimal(10_000)
DEFAULT_HISTORY_LIMIT: int = 50
MAX_HISTORY_LIMIT: int = 100
UNEXPECTED_GATEWAY_ERROR: str = "UNEXPECTED_GATEWAY_ERROR"


def apply_result(batch: PaymentBatch, result: BatchResult) -> None:
    """Move a processing batch to its terminal state from a gateway result.

    With both processed and failed counts the first ``processed_count``
    payments, in batch order, are the ones that went through.
    """
    if result.success and result.transaction_id:
        batch.mark_completed(result.transaction_id)
        return

    error: str = result.error or "Batch processing failed"
    cut: int = result.processed_count
    # Counts that cannot split this batch are recorded as a plain failure.
    if result.transaction_id and result.failed_count > 0 and 0 < cut < len(batch.payments):
        batch.mark_partially_failed(
            completed_ids=[p.id for p in batch.payments[:cut]],
            failed_ids=[p.id for p in batch.payments[cut:]],
            transaction_id=result.transaction_id,
            error=error,
        )
        return

    batch.mark_failed(error)


def _outcome(batch: PaymentBatch) -> BatchOutcome:
    return BatchOutcome(
        batch_id=batch.id,
        status=batch.status,
        processed_count=len(batch.completed_payments),
        failed_count=len(batch.failed_payments),
        transaction_id=batch.transaction_id,
        error=batch.error_message,
    )


class PayoutExecutor:
    """Sequential batch submission; each batch commits or fails on its own."""

    def __init__(
        self,
        repository: PaymentRepository,
        gateway: PaymentGateway | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.repository: PaymentRepository = repository
        self.gateway: PaymentGateway | None = gateway
        self.timeout_seconds: float = (
            timeout_seconds
            if timeout_seconds is not None
            else get_settings().payout.gateway_timeout_seconds
        )

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise GatewayUnavailableError("No payment gateway configured")
        return self.gateway

    async def _is_available(self, gateway: PaymentGateway) -> bool:
        try:
            return await gateway.is_available()
        except Exception:
            logger.exception("Gateway availability check raised")
            return False

    async def _submit(self, gateway: PaymentGateway, batch: PaymentBatch) -> BatchResult:
        try:
            return await asyncio.wait_for(gateway.process_batch(batch), timeout=self.timeout_seconds)
        except TimeoutError:
            err: PaymentGatewayError = PaymentTimeoutError(self.timeout_seconds)
        except PaymentGatewayError as e:
            err = e
        except Exception as e:
            logger.exception("Gateway raised while processing batch", batch_id=batch.id)
            err = PaymentGatewayError(str(e) or type(e).__name__, code=UNEXPECTED_GATEWAY_ERROR)
        return BatchResult(
            success=False,
            failed_count=len(batch.payments),
            error=str(err),
            error_code=err.code,
        )

    async def execute_batches(
        self, batches: Sequence[PaymentBatch], stop_on_failure: bool = True
    ) -> ExecutionReport:
        """Submit ``batches`` one at a time.

        Completed batches stay committed whatever happens later. With
        ``stop_on_failure`` the run halts after the first batch that did not
        fully complete and ``resume_from`` points at the next pending batch.
        """
        gateway: PaymentGateway = self._require_gateway()
        outcomes: list[BatchOutcome] = []
        processed: int = 0
        failed: int = 0
        resume_from: int | None = None

        for index, batch in enumerate(batches):
            if batch.status is not BatchStatus.PENDING:
                outcomes.append(_outcome(batch))
                continue

            self.repository.save(batch)
            if not await self._is_available(gateway):
                resume_from = index
                logger.error("Gateway unavailable, stopping", batch_id=batch.id, index=index)
                break

            batch.start_processing()
            self.repository.save(batch)

            result: BatchResult = await self._submit(gateway, batch)
            apply_result(batch, result)
            self.repository.save(batch)

            outcome: BatchOutcome = _outcome(batch)
            outcomes.append(outcome)
            processed += outcome.processed_count
            failed += outcome.failed_count

            if batch.status is BatchStatus.COMPLETED:
                logger.info(
                    "Batch completed",
                    batch_id=batch.id,
                    index=index,
                    payments=len(batch.payments),
                    tx_id=batch.transaction_id,
                )
                continue

            logger.error(
                "Batch did not complete",
                batch_id=batch.id,
                index=index,
                status=batch.status.value,
                error=batch.error_message,
                error_code=result.error_code,
            )
            if stop_on_failure:
                resume_from = index + 1 if index + 1 < len(batches) else None
                break

        return ExecutionReport(
            outcomes=outcomes,
            processed_count=processed,
            failed_count=failed,
            resume_from=resume_from,
        )

    def apply_batch_result(self, batch_id: str, result: BatchResult) -> PaymentBatch:
        """Store an outcome reported by the browser wallet for a stored batch."""
        batch: PaymentBatch | None = self.repository.find_batch_by_id(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        if batch.status is BatchStatus.PENDING:
            batch.start_processing()
        apply_result(batch, result)
        self.repository.save(batch)
        logger.info(
            "Recorded batch result",
            batch_id=batch_id,
            status=batch.status.value,
            processed=result.processed_count,
            failed=result.failed_count,
        )
        return batch

    async def process_single_payment(
        self,
        sender: str,
        recipient: str,
        amount: Decimal | str,
        currency: Currency = Currency.HIVE,
        memo: str | None = None,
    ) -> Payment:
        value: PaymentAmount = PaymentAmount.of(amount, currency)
        if value.value < MIN_TRANSFER:
            raise InvalidAmountError(f"Amount must be at least {MIN_TRANSFER}")
        if value.value > MAX_SINGLE_TRANSFER:
            raise InvalidAmountError(f"Amount cannot exceed {MAX_SINGLE_TRANSFER}")
        payment: Payment = Payment.create(sender, recipient, value, memo, PaymentType.SINGLE_TRANSFER)

        gateway: PaymentGateway = self._require_gateway()
        self.repository.save(payment)
        payment.start_processing()

        try:
            if not await gateway.is_available():
                raise GatewayUnavailableError()
            balance: AccountBalance = await gateway.get_balance(payment.sender)
            available: Decimal = balance.hive if value.currency is Currency.HIVE else balance.hbd
            fees: Decimal = await gateway.estimate_fees(payment)
            if available < value.value + fees:
                raise InsufficientBalanceError(
                    PaymentAmount.of(value.value + fees, value.currency).formatted(),
                    f"{available:.3f} {value.currency.value}",
                )
            result: BatchResult = await asyncio.wait_for(
                gateway.process_payment(payment), timeout=self.timeout_seconds
            )
        except TimeoutError:
            result = BatchResult(success=False, error=str(PaymentTimeoutError(self.timeout_seconds)))
        except PaymentGatewayError as e:
            result = BatchResult(success=False, error=str(e), error_code=e.code)
        except Exception as e:
            logger.exception("Gateway raised while processing payment", payment_id=payment.id)
            result = BatchResult(
                success=False, error=str(e) or type(e).__name__, error_code=UNEXPECTED_GATEWAY_ERROR
            )

        if result.success and result.transaction_id:
            payment.mark_completed(result.transaction_id)
        else:
            payment.mark_failed(result.error or "Payment failed")
            logger.error("Payment failed", payment_id=payment.id, error=payment.error_message)
        self.repository.save(payment)
        return payment

    def _load_payment(self, payment_id: str) -> Payment:
        payment: Payment | None = self.repository.find_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def cancel_payment(self, payment_id: str) -> Payment:
        payment: Payment = self._load_payment(payment_id)
        payment.cancel()
        self.repository.save(payment)
        return payment

    def retry_payment(self, payment_id: str) -> Payment:
        payment: Payment = self._load_payment(payment_id)
        payment.retry()
        self.repository.save(payment)
        return payment

    def cancel_batch(self, batch_id: str) -> PaymentBatch:
        batch: PaymentBatch | None = self.repository.find_batch_by_id(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        batch.cancel()
        self.repository.save(batch)
        return batch


class PaymentQueryService:
    """Read side: history and per-user statistics."""

    def __init__(self, repository: SqlPaymentRepository) -> None:
        self.repository: SqlPaymentRepository = repository

    def history(
        self,
        username: str,
        status: PaymentStatus | None = None,
        payment_type: PaymentType | None = None,
        currency: Currency | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> PaymentHistoryDict:
        page_size: int = min(limit or DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT)
        payments: list[Payment] = self.repository.find_by_user(
            username, status, payment_type, currency, limit=page_size, offset=offset
        )
        total: int = self.repository.count_by_user(username, status, payment_type, currency)
        return PaymentHistoryDict(
            payments=[p.to_dict() for p in payments],
            total=total,
            limit=page_size,
            offset=offset,
            hasMore=offset + len(payments) < total,
        )

    def stats(self, username: str) -> PaymentStatsDict:
        by_status: dict[str, int] = {s.value: 0 for s in PaymentStatus}
        by_status.update(self.repository.count_by_status(username))
        total: int = sum(by_status.values())
        completed: int = by_status[PaymentStatus.COMPLETED.value]
        finished: int = completed + by_status[PaymentStatus.FAILED.value]
        rate: Decimal = Decimal(completed) * 100 / Decimal(finished) if finished else Decimal(0)
        return PaymentStatsDict(
            username=username.lower(),
            total=total,
            byStatus=by_status,
            totalsByCurrency={
                code: f"{amount:.3f}"
                for code, amount in self.repository.completed_totals(username).items()
            },
            successRate=f"{rate:.2f}",
        )
