"""Tests for PayoutExecutor and PaymentQueryService."""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from db.enums import BatchStatus, Currency, PaymentStatus
from hivepay.services.entities import Payment, PaymentAmount, PaymentBatch
from hivepay.services.errors import (
    BatchNotFoundError,
    DataSourceError,
    InvalidAmountError,
    InvalidStatusTransition,
    PaymentNotFoundError,
    TransactionFailedError,
)
from hivepay.services.execution import PaymentQueryService, PayoutExecutor, apply_result
from hivepay.services.repository import SqlPaymentRepository
from hivepay.services.schemas.chain import AccountBalance
from hivepay.services.schemas.results import BatchResult
from tests.fakes import FakeGateway


class SlowGateway(FakeGateway):
    async def process_batch(self, batch: PaymentBatch) -> BatchResult:
        await asyncio.sleep(1)
        return await super().process_batch(batch)


class UnreachableGateway(FakeGateway):
    async def is_available(self) -> bool:
        raise DataSourceError("node down")


class BrokenBalanceGateway(FakeGateway):
    async def get_balance(self, account: str) -> AccountBalance:
        raise DataSourceError("node down")


def _batch(prefix: str, n: int = 3) -> PaymentBatch:
    return PaymentBatch.create(
        [Payment.create("aliento", f"{prefix}{i}", PaymentAmount.of("1.000"), "") for i in range(n)]
    )


def _executor(session: Session, gateway: FakeGateway, timeout: float = 5) -> PayoutExecutor:
    return PayoutExecutor(SqlPaymentRepository(session), gateway, timeout_seconds=timeout)


class TestApplyResult:
    def test_partial_marks_leading_payments(self) -> None:
        batch = _batch("user")
        batch.start_processing()
        apply_result(
            batch,
            BatchResult(success=False, transaction_id="tx", processed_count=2, failed_count=1, error="x"),
        )
        assert batch.status is BatchStatus.PARTIALLY_FAILED
        assert [p.status for p in batch.payments] == [
            PaymentStatus.COMPLETED,
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
        ]

    def test_success_without_transaction_fails(self) -> None:
        batch = _batch("user")
        batch.start_processing()
        apply_result(batch, BatchResult(success=True))
        assert batch.status is BatchStatus.FAILED

    def test_counts_that_cannot_split_fail_the_batch(self) -> None:
        batch = _batch("user", n=1)
        batch.start_processing()
        apply_result(
            batch,
            BatchResult(success=False, transaction_id="tx", processed_count=1, failed_count=1, error="x"),
        )
        assert batch.status is BatchStatus.FAILED
        assert batch.payments[0].status is PaymentStatus.FAILED
        assert batch.transaction_id is None


class TestExecuteBatches:
    async def test_all_complete(self, session: Session) -> None:
        gateway = FakeGateway()
        batches = [_batch("aaa"), _batch("bbb")]

        report = await _executor(session, gateway).execute_batches(batches)

        assert report.completed
        assert report.processed_count == 6
        assert [o.status for o in report.outcomes] == [BatchStatus.COMPLETED] * 2
        stored = SqlPaymentRepository(session).find_batch_by_id(batches[1].id)
        assert stored is not None and stored.status is BatchStatus.COMPLETED

    async def test_stops_after_failure(self, session: Session) -> None:
        gateway = FakeGateway(
            results=[
                BatchResult(success=True, transaction_id="tx1", processed_count=3),
                BatchResult(success=False, failed_count=3, error="rejected"),
            ]
        )
        batches = [_batch("aaa"), _batch("bbb"), _batch("ccc")]

        report = await _executor(session, gateway).execute_batches(batches)

        assert not report.completed
        assert report.resume_from == 2
        assert [b.status for b in batches] == [
            BatchStatus.COMPLETED,
            BatchStatus.FAILED,
            BatchStatus.PENDING,
        ]
        assert report.failed_count == 3

    async def test_resume_skips_finished_batches(self, session: Session) -> None:
        gateway = FakeGateway(
            results=[
                BatchResult(success=True, transaction_id="tx1", processed_count=3),
                BatchResult(success=False, failed_count=3, error="rejected"),
            ]
        )
        batches = [_batch("aaa"), _batch("bbb"), _batch("ccc")]
        executor = _executor(session, gateway)
        await executor.execute_batches(batches)

        report = await executor.execute_batches(batches)

        assert batches[2].status is BatchStatus.COMPLETED
        assert gateway.submitted == [b.id for b in batches]
        assert report.resume_from is None

    async def test_continue_on_failure(self, session: Session) -> None:
        gateway = FakeGateway(results=[BatchResult(success=False, failed_count=3, error="rejected")])
        batches = [_batch("aaa"), _batch("bbb")]

        report = await _executor(session, gateway).execute_batches(batches, stop_on_failure=False)

        assert [o.status for o in report.outcomes] == [BatchStatus.FAILED, BatchStatus.COMPLETED]

    async def test_gateway_error_becomes_failed_batch(self, session: Session) -> None:
        gateway = FakeGateway(results=[TransactionFailedError("bad signature")])
        batch = _batch("aaa")

        report = await _executor(session, gateway).execute_batches([batch])

        assert batch.status is BatchStatus.FAILED
        assert batch.error_message == "bad signature"
        assert report.outcomes[0].failed_count == 3

    async def test_unexpected_gateway_exception_fails_batch(self, session: Session) -> None:
        gateway = FakeGateway(results=[DataSourceError("rpc down")])
        batches = [_batch("aaa"), _batch("bbb")]

        report = await _executor(session, gateway).execute_batches(batches)

        assert batches[0].status is BatchStatus.FAILED
        assert batches[0].error_message == "rpc down"
        assert batches[1].status is BatchStatus.PENDING
        assert report.resume_from == 1
        assert report.failed_count == 3
        stored = SqlPaymentRepository(session).find_batch_by_id(batches[0].id)
        assert stored is not None and stored.status is BatchStatus.FAILED

    async def test_availability_check_exception_stops_run(self, session: Session) -> None:
        batch = _batch("aaa")
        report = await _executor(session, UnreachableGateway()).execute_batches([batch])

        assert report.resume_from == 0
        assert batch.status is BatchStatus.PENDING

    async def test_timeout(self, session: Session) -> None:
        batch = _batch("aaa")
        report = await _executor(session, SlowGateway(), timeout=0.01).execute_batches([batch])

        assert batch.status is BatchStatus.FAILED
        assert batch.error_message == "Payment timed out after 10ms"
        assert report.resume_from is None
        assert not report.completed

    async def test_unavailable_gateway(self, session: Session) -> None:
        batch = _batch("aaa")
        report = await _executor(session, FakeGateway(available=False)).execute_batches([batch])

        assert report.resume_from == 0
        assert report.outcomes == []
        assert batch.status is BatchStatus.PENDING

    async def test_partial_result(self, session: Session) -> None:
        gateway = FakeGateway(
            results=[
                BatchResult(
                    success=False, transaction_id="tx1", processed_count=1, failed_count=2, error="x"
                )
            ]
        )
        batch = _batch("aaa")
        report = await _executor(session, gateway).execute_batches([batch])

        assert batch.status is BatchStatus.PARTIALLY_FAILED
        assert report.processed_count == 1
        assert report.failed_count == 2


class TestRecordAndManage:
    def test_record_browser_result(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        batch = _batch("aaa")
        repo.save(batch)

        stored = PayoutExecutor(repo).apply_batch_result(
            batch.id, BatchResult(success=True, transaction_id="tx7", processed_count=3)
        )

        assert stored.status is BatchStatus.COMPLETED
        assert all(p.transaction_id == "tx7" for p in stored.payments)

    def test_record_unknown_batch(self, session: Session) -> None:
        with pytest.raises(BatchNotFoundError):
            PayoutExecutor(SqlPaymentRepository(session)).apply_batch_result(
                "batch_nope", BatchResult(success=True, transaction_id="tx")
            )

    def test_cancel_batch(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        batch = _batch("aaa")
        repo.save(batch)

        PayoutExecutor(repo).cancel_batch(batch.id)

        stored = repo.find_batch_by_id(batch.id)
        assert stored is not None and stored.status is BatchStatus.CANCELLED

    def test_cancel_and_retry_payment(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        executor = PayoutExecutor(repo)
        p = Payment.create("aliento", "alice", PaymentAmount.of(1), "")
        repo.save(p)

        assert executor.cancel_payment(p.id).status is PaymentStatus.CANCELLED
        with pytest.raises(InvalidStatusTransition):
            executor.retry_payment(p.id)
        with pytest.raises(PaymentNotFoundError):
            executor.cancel_payment("pay_missing")


class TestSinglePayment:
    async def test_success(self, session: Session) -> None:
        payment = await _executor(session, FakeGateway()).process_single_payment(
            "aliento", "alice", "2.5", Currency.HIVE, "hi"
        )
        assert payment.status is PaymentStatus.COMPLETED
        assert payment.transaction_id == f"tx-{payment.id}"

    async def test_insufficient_balance(self, session: Session) -> None:
        gateway = FakeGateway(balance=AccountBalance("aliento", Decimal(1), Decimal(0)))
        payment = await _executor(session, gateway).process_single_payment(
            "aliento", "alice", "2.5"
        )
        assert payment.status is PaymentStatus.FAILED
        assert payment.error_message is not None
        assert "Insufficient balance" in payment.error_message
        stored = SqlPaymentRepository(session).find_by_id(payment.id)
        assert stored is not None and stored.status is PaymentStatus.FAILED

    async def test_fees_count_against_balance(self, session: Session) -> None:
        gateway = FakeGateway(
            balance=AccountBalance("aliento", Decimal("2.5"), Decimal(0)), fee=Decimal("0.001")
        )
        payment = await _executor(session, gateway).process_single_payment(
            "aliento", "alice", "2.5"
        )
        assert payment.status is PaymentStatus.FAILED

    async def test_unexpected_exception_fails_payment(self, session: Session) -> None:
        payment = await _executor(session, BrokenBalanceGateway()).process_single_payment(
            "aliento", "alice", "1.000"
        )

        assert payment.status is PaymentStatus.FAILED
        assert payment.error_message == "node down"
        stored = SqlPaymentRepository(session).find_by_id(payment.id)
        assert stored is not None and stored.status is PaymentStatus.FAILED

    @pytest.mark.parametrize("amount", ["0", "10000.001"])
    async def test_amount_limits(self, session: Session, amount: str) -> None:
        with pytest.raises(InvalidAmountError):
            await _executor(session, FakeGateway()).process_single_payment(
                "aliento", "alice", amount
            )


class TestQueryService:
    def _seed(self, session: Session, n: int) -> PaymentQueryService:
        repo = SqlPaymentRepository(session)
        for i in range(n):
            p = Payment.create("aliento", f"user{i}", PaymentAmount.of("1.500"), "")
            p.created_at = f"2026-01-01T00:00:{i:02d}+00:00"
            if i % 2 == 0:
                p.start_processing()
                p.mark_completed(f"tx{i}")
            repo.save(p)
        return PaymentQueryService(repo)

    def test_history_paging(self, session: Session) -> None:
        service = self._seed(session, 5)

        page = service.history("aliento", limit=2)

        assert page["total"] == 5
        assert page["hasMore"] is True
        assert [p["to"] for p in page["payments"]] == ["user4", "user3"]
        assert service.history("aliento", limit=2, offset=4)["hasMore"] is False

    def test_limit_capped(self, session: Session) -> None:
        assert self._seed(session, 1).history("aliento", limit=500)["limit"] == 100

    def test_stats(self, session: Session) -> None:
        stats = self._seed(session, 4).stats("Aliento")

        assert stats["total"] == 4
        assert stats["byStatus"]["completed"] == 2
        assert stats["byStatus"]["failed"] == 0
        assert stats["totalsByCurrency"] == {"HIVE": "3.000"}
        assert stats["successRate"] == "100.00"
