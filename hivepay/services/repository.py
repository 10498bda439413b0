"""SQLAlchemy-backed PaymentRepository."""

from decimal import Decimal

from sqlalchemy import ColumnElement, Select, and_, func, select
from sqlalchemy.orm import Session, selectinload

from db.enums import BatchStatus, Currency, PaymentStatus, PaymentType
from db.models import PaymentBatches, Payments
from hivepay.services.entities import Payment, PaymentAmount, PaymentBatch


def _payment_from_row(row: Payments) -> Payment:
    return Payment(
        id=row.id,
        sender=row.sender,
        recipient=row.recipient,
        amount=PaymentAmount(Decimal(row.amount), Currency(row.currency)),
        memo=row.memo,
        payment_type=PaymentType(row.payment_type),
        status=PaymentStatus(row.status),
        created_at=row.created_at,
        processed_at=row.processed_at,
        transaction_id=row.transaction_id,
        error_message=row.error_message,
    )


def _batch_from_row(row: PaymentBatches) -> PaymentBatch:
    return PaymentBatch(
        id=row.id,
        created_by=row.created_by,
        payments=[_payment_from_row(p) for p in row.payments],
        status=BatchStatus(row.status),
        created_at=row.created_at,
        processed_at=row.processed_at,
        transaction_id=row.transaction_id,
        error_message=row.error_message,
    )


def _apply_payment(row: Payments, payment: Payment) -> None:
    row.sender = payment.sender
    row.recipient = payment.recipient
    row.amount = str(payment.amount.value)
    row.currency = payment.amount.currency.value
    row.memo = payment.memo
    row.payment_type = payment.payment_type.value
    row.status = payment.status.value
    row.created_at = payment.created_at
    row.processed_at = payment.processed_at
    row.transaction_id = payment.transaction_id
    row.error_message = payment.error_message


class SqlPaymentRepository:
    """Persists Payment / PaymentBatch aggregates. Flushes; the caller's session commits."""

    def __init__(self, session: Session) -> None:
        self.session: Session = session

    def save(self, item: Payment | PaymentBatch) -> None:
        if isinstance(item, PaymentBatch):
            self._save_batch(item)
        else:
            self._save_payment(item)
        self.session.flush()

    def _save_payment(self, payment: Payment, batch_id: str | None = None, position: int = 0) -> None:
        row: Payments | None = self.session.get(Payments, payment.id)
        if row is None:
            row = Payments(id=payment.id, batch_id=batch_id, position=position)
            self.session.add(row)
        elif batch_id is not None:
            row.batch_id = batch_id
            row.position = position
        _apply_payment(row, payment)

    def _save_batch(self, batch: PaymentBatch) -> None:
        row: PaymentBatches | None = self.session.get(PaymentBatches, batch.id)
        if row is None:
            row = PaymentBatches(id=batch.id)
            self.session.add(row)
        row.created_by = batch.created_by
        row.currency = batch.currency.value
        row.status = batch.status.value
        row.created_at = batch.created_at
        row.processed_at = batch.processed_at
        row.transaction_id = batch.transaction_id
        row.error_message = batch.error_message
        self.session.flush()
        for position, payment in enumerate(batch.payments):
            self._save_payment(payment, batch_id=batch.id, position=position)

    def find_by_id(self, payment_id: str) -> Payment | None:
        row: Payments | None = self.session.get(Payments, payment_id)
        return _payment_from_row(row) if row else None

    def find_by_transaction_id(self, transaction_id: str) -> list[Payment]:
        stmt: Select[tuple[Payments]] = (
            select(Payments)
            .where(Payments.transaction_id == transaction_id)
            .order_by(Payments.batch_id, Payments.position)
        )
        return [_payment_from_row(r) for r in self.session.scalars(stmt).all()]

    def find_batch_by_id(self, batch_id: str) -> PaymentBatch | None:
        stmt: Select[tuple[PaymentBatches]] = (
            select(PaymentBatches)
            .where(PaymentBatches.id == batch_id)
            .options(selectinload(PaymentBatches.payments))
            .execution_options(populate_existing=True)
        )
        row: PaymentBatches | None = self.session.scalar(stmt)
        return _batch_from_row(row) if row else None

    def find_batches_by_user(self, username: str, limit: int = 50) -> list[PaymentBatch]:
        stmt: Select[tuple[PaymentBatches]] = (
            select(PaymentBatches)
            .where(PaymentBatches.created_by == username.lower())
            .options(selectinload(PaymentBatches.payments))
            .execution_options(populate_existing=True)
            .order_by(PaymentBatches.created_at.desc())
            .limit(limit)
        )
        return [_batch_from_row(r) for r in self.session.scalars(stmt).all()]

    def _user_conditions(
        self,
        username: str,
        status: PaymentStatus | None = None,
        payment_type: PaymentType | None = None,
        currency: Currency | None = None,
    ) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = [Payments.sender == username.lower()]
        if status is not None:
            conditions.append(Payments.status == status.value)
        if payment_type is not None:
            conditions.append(Payments.payment_type == payment_type.value)
        if currency is not None:
            conditions.append(Payments.currency == currency.value)
        return conditions

    def find_by_user(
        self,
        username: str,
        status: PaymentStatus | None = None,
        payment_type: PaymentType | None = None,
        currency: Currency | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Payment]:
        stmt: Select[tuple[Payments]] = (
            select(Payments)
            .where(and_(*self._user_conditions(username, status, payment_type, currency)))
            .order_by(Payments.created_at.desc(), Payments.id)
            .limit(limit)
            .offset(offset)
        )
        return [_payment_from_row(r) for r in self.session.scalars(stmt).all()]

    def count_by_user(
        self,
        username: str,
        status: PaymentStatus | None = None,
        payment_type: PaymentType | None = None,
        currency: Currency | None = None,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(Payments)
            .where(and_(*self._user_conditions(username, status, payment_type, currency)))
        )
        return self.session.scalar(stmt) or 0

    def count_by_status(self, username: str) -> dict[str, int]:
        stmt = (
            select(Payments.status, func.count())
            .where(Payments.sender == username.lower())
            .group_by(Payments.status)
        )
        return {status: count for status, count in self.session.execute(stmt).all()}

    def completed_totals(self, username: str) -> dict[str, Decimal]:
        """Sum of completed amounts per currency. Amounts are stored as text, so summed here."""
        stmt = select(Payments.currency, Payments.amount).where(
            and_(
                Payments.sender == username.lower(),
                Payments.status == PaymentStatus.COMPLETED.value,
            )
        )
        totals: dict[str, Decimal] = {}
        for currency, amount in self.session.execute(stmt).all():
            totals[currency] = totals.get(currency, Decimal(0)) + Decimal(amount)
        return totals
