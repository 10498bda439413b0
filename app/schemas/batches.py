"""Batch and payment request schemas."""

from decimal import Decimal

from pydantic import Field

from app.schemas.common import CamelModel
from db.enums import Currency, PaymentType
from hivepay.services.schemas.results import BatchResult, CalculatedPayment


class PaymentRowIn(CamelModel):
    recipient: str = Field(..., min_length=3, max_length=16)
    amount: Decimal = Field(..., ge=0)
    memo: str = Field("", max_length=2048)
    hp: Decimal = Field(Decimal(0), ge=0)
    percentage: Decimal = Field(Decimal(0), ge=0, le=100)

    def to_calculated(self) -> CalculatedPayment:
        return CalculatedPayment(
            recipient=self.recipient,
            weight_hp=self.hp,
            percentage_of_total=self.percentage,
            amount=self.amount,
            memo=self.memo,
        )


class BatchCreate(CamelModel):
    sender: str = Field(..., min_length=3, max_length=16)
    currency: Currency = Currency.HIVE
    payment_type: PaymentType = PaymentType.CURATION_REWARD
    max_size: int = Field(30, ge=1, le=30)
    payments: list[PaymentRowIn] = Field(..., min_length=1)


class BatchResultIn(CamelModel):
    success: bool
    transaction_id: str | None = None
    processed_count: int = Field(0, ge=0)
    failed_count: int = Field(0, ge=0)
    error: str | None = None
    error_code: str | None = None
    block_number: int | None = None

    def to_result(self) -> BatchResult:
        return BatchResult(**self.model_dump())
