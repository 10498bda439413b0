"""Tests for SqlPaymentRepository."""

from decimal import Decimal

from sqlalchemy.orm import Session

from db.enums import BatchStatus, Currency, PaymentStatus, PaymentType
from hivepay.services.entities import Payment, PaymentAmount, PaymentBatch
from hivepay.services.repository import SqlPaymentRepository


def _payment(recipient: str, amount: str = "1.000", created_at: str | None = None) -> Payment:
    p = Payment.create("aliento", recipient, PaymentAmount.of(amount), "memo")
    if created_at:
        p.created_at = created_at
    return p


class TestSave:
    def test_payment_roundtrip(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        p = _payment("alice", "2.500")
        repo.save(p)

        loaded = repo.find_by_id(p.id)
        assert loaded == p

    def test_update_in_place(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        p = _payment("alice")
        repo.save(p)
        p.start_processing()
        p.mark_completed("tx1")
        repo.save(p)

        loaded = repo.find_by_id(p.id)
        assert loaded is not None
        assert loaded.status is PaymentStatus.COMPLETED
        assert [x.id for x in repo.find_by_transaction_id("tx1")] == [p.id]

    def test_batch_roundtrip_keeps_order(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        batch = PaymentBatch.create([_payment("carol"), _payment("alice"), _payment("bob")])
        repo.save(batch)

        loaded = repo.find_batch_by_id(batch.id)
        assert loaded is not None
        assert [p.recipient for p in loaded.payments] == ["carol", "alice", "bob"]
        assert loaded.status is BatchStatus.PENDING

    def test_batch_status_change(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        batch = PaymentBatch.create([_payment("alice"), _payment("bob")])
        repo.save(batch)
        batch.start_processing()
        batch.mark_failed("nope")
        repo.save(batch)

        loaded = repo.find_batch_by_id(batch.id)
        assert loaded is not None
        assert loaded.status is BatchStatus.FAILED
        assert all(p.error_message == "nope" for p in loaded.payments)

    def test_missing(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        assert repo.find_by_id("pay_missing") is None
        assert repo.find_batch_by_id("batch_missing") is None


class TestQueries:
    def _seed(self, session: Session) -> SqlPaymentRepository:
        repo = SqlPaymentRepository(session)
        for i in range(5):
            p = _payment(f"user{i}", "1.000", created_at=f"2026-01-0{i + 1}T00:00:00+00:00")
            if i < 3:
                p.start_processing()
                p.mark_completed(f"tx{i}")
            repo.save(p)
        repo.save(Payment.create("other", "alice", PaymentAmount.of(1), ""))
        return repo

    def test_find_by_user_newest_first(self, session: Session) -> None:
        repo = self._seed(session)
        found = repo.find_by_user("Aliento", limit=2)
        assert [p.recipient for p in found] == ["user4", "user3"]

    def test_filters_and_count(self, session: Session) -> None:
        repo = self._seed(session)
        assert repo.count_by_user("aliento") == 5
        assert repo.count_by_user("aliento", status=PaymentStatus.COMPLETED) == 3
        assert repo.count_by_user("aliento", currency=Currency.HBD) == 0
        assert repo.count_by_user("aliento", payment_type=PaymentType.SINGLE_TRANSFER) == 5

    def test_offset(self, session: Session) -> None:
        repo = self._seed(session)
        assert len(repo.find_by_user("aliento", limit=10, offset=3)) == 2

    def test_aggregates(self, session: Session) -> None:
        repo = self._seed(session)
        assert repo.count_by_status("aliento") == {"completed": 3, "pending": 2}
        assert repo.completed_totals("aliento") == {"HIVE": Decimal("3.000")}

    def test_batches_by_user(self, session: Session) -> None:
        repo = SqlPaymentRepository(session)
        repo.save(PaymentBatch.create([_payment("alice")]))
        repo.save(PaymentBatch.create([_payment("bob")]))
        assert len(repo.find_batches_by_user("aliento")) == 2
        assert repo.find_batches_by_user("nobody") == []
