"""SQLAlchemy ORM models for payments and payment batches."""

from typing import Any

from sqlalchemy import ForeignKey, MetaData, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)

    def to_dict(self) -> dict[str, Any]:
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class PaymentBatches(Base):
    __tablename__ = "payment_batches"

    id: Mapped[str] = mapped_column(primary_key=True)
    created_by: Mapped[str] = mapped_column(nullable=False, index=True)
    currency: Mapped[str] = mapped_column(nullable=False, default="HIVE")
    status: Mapped[str] = mapped_column(nullable=False, default="pending")
    transaction_id: Mapped[str | None] = mapped_column()
    error_message: Mapped[str | None] = mapped_column()
    created_at: Mapped[str] = mapped_column(nullable=False)
    processed_at: Mapped[str | None] = mapped_column()
    payments = relationship(
        "Payments",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="Payments.position",
    )


class Payments(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(primary_key=True)
    batch_id: Mapped[str | None] = mapped_column(ForeignKey("payment_batches.id"), index=True)
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    sender: Mapped[str] = mapped_column(nullable=False, index=True)
    recipient: Mapped[str] = mapped_column(nullable=False, index=True)
    amount: Mapped[str] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(nullable=False, default="HIVE")
    memo: Mapped[str] = mapped_column(nullable=False, default="")
    payment_type: Mapped[str] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(nullable=False, default="pending")
    created_at: Mapped[str] = mapped_column(nullable=False)
    processed_at: Mapped[str | None] = mapped_column()
    transaction_id: Mapped[str | None] = mapped_column(index=True)
    error_message: Mapped[str | None] = mapped_column()

    __table_args__ = (UniqueConstraint("batch_id", "position"),)
    batch = relationship("PaymentBatches", back_populates="payments")
